import logging
import os
from pathlib import Path
from typing import List, Optional
from vtc.domain.models import EncodePlan
from vtc.infrastructure.housekeeping import remove_quietly
from vtc.infrastructure.process_runner import LineCallback, ProcessResult, run_process

class FFmpegAdapter:
    """Wrapper around ffmpeg for two-pass, target-bitrate encodes."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg"):
        self.ffmpeg_bin = ffmpeg_bin
        self.logger = logging.getLogger(__name__)

    def build_pass_args(
        self,
        input_path: Path,
        plan: EncodePlan,
        passlog: Path,
        pass_number: int,
        output_path: Optional[Path] = None,
    ) -> List[str]:
        """Constructs ffmpeg arguments for pass 1 (stats only) or pass 2 (final file)."""
        if pass_number not in (1, 2):
            raise ValueError(f"Invalid pass number: {pass_number}")

        args = [
            "-y",  # Overwrite output files
            "-i", str(input_path),
        ]
        if plan.scale_filter:
            args.extend(["-vf", plan.scale_filter])
        args.extend([
            "-c:v", plan.video_codec,
            "-b:v", f"{plan.video_bitrate_kbps}k",
            "-preset", plan.preset,
            "-pass", str(pass_number),
            "-passlogfile", str(passlog),
        ])

        if pass_number == 1:
            # Stats-gathering pass: no audio, output discarded
            args.extend(["-an", "-f", "mp4", os.devnull])
        else:
            if output_path is None:
                raise ValueError("Pass 2 requires an output path")
            args.extend([
                "-c:a", "aac",
                "-b:a", f"{plan.audio_bitrate_kbps}k",
                "-movflags", "+faststart",
                str(output_path),
            ])
        return args

    def run_pass(
        self,
        input_path: Path,
        plan: EncodePlan,
        passlog: Path,
        pass_number: int,
        output_path: Optional[Path] = None,
        on_progress: Optional[LineCallback] = None,
    ) -> ProcessResult:
        """Runs one pass. Progress comes from ffmpeg's stderr. Raises ProcessFailed."""
        args = self.build_pass_args(input_path, plan, passlog, pass_number, output_path)
        self.logger.debug(f"FFMPEG_CMD: {self.ffmpeg_bin} {' '.join(args)}")
        return run_process(self.ffmpeg_bin, args, on_stderr=on_progress)

    @staticmethod
    def passlog_artifacts(passlog: Path) -> List[Path]:
        """Stats files the encoders leave behind for a given -passlogfile prefix."""
        return [Path(f"{passlog}-0.log{suffix}") for suffix in ("", ".mbtree", ".cutree")]

    def cleanup_passlog(self, passlog: Path) -> None:
        for artifact in self.passlog_artifacts(passlog):
            remove_quietly(artifact)
