import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from vtc.domain.errors import ProbeFailed, ProbeParseError, ProcessFailed
from vtc.domain.models import MediaProbe
from vtc.infrastructure.process_runner import run_process

class FFprobeAdapter:
    """Wrapper around ffprobe to extract duration and primary video geometry."""

    def __init__(self, ffprobe_bin: str = "ffprobe"):
        self.ffprobe_bin = ffprobe_bin
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _to_float(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @staticmethod
    def _to_int(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @classmethod
    def _parse_duration_tag(cls, value: Any) -> float:
        """Parses container DURATION tags such as '00:01:05.500' (Matroska) or plain seconds."""
        if value is None:
            return 0.0
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            pass
        parts = text.split(":")
        if len(parts) not in (2, 3):
            return 0.0
        try:
            parts_f = [float(p) for p in parts]
        except ValueError:
            return 0.0
        if len(parts_f) == 2:
            minutes, seconds = parts_f
            return minutes * 60 + seconds
        hours, minutes, seconds = parts_f
        return hours * 3600 + minutes * 60 + seconds

    def _build_args(self, file_path: Path) -> List[str]:
        return [
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(file_path),
        ]

    def get_report(self, file_path: Path) -> Dict[str, Any]:
        """Executes ffprobe and returns the decoded JSON report."""
        chunks: List[str] = []
        try:
            run_process(self.ffprobe_bin, self._build_args(file_path), on_stdout=chunks.append)
        except ProcessFailed as exc:
            raise ProbeFailed(exc.cmd, exc.returncode, exc.stderr) from exc

        try:
            data = json.loads("".join(chunks))
        except ValueError as exc:
            raise ProbeParseError(f"Failed to parse ffprobe output: {exc}") from exc
        if not isinstance(data, dict):
            raise ProbeParseError("Failed to parse ffprobe output: expected a JSON object")
        return data

    @classmethod
    def parse_report(cls, data: Dict[str, Any]) -> MediaProbe:
        # Container-level duration only; stream durations are never summed.
        fmt = data.get("format") or {}
        duration = cls._to_float(fmt.get("duration"))
        if duration <= 0:
            tags = fmt.get("tags") or {}
            duration = cls._parse_duration_tag(tags.get("DURATION") or tags.get("duration"))
        if duration != duration or duration <= 0:  # NaN or non-positive
            duration = 0.0

        video_stream: Optional[Dict[str, Any]] = next(
            (s for s in data.get("streams") or [] if s.get("codec_type") == "video"), None
        )
        if video_stream is None:
            return MediaProbe(duration_seconds=duration)

        return MediaProbe(
            duration_seconds=duration,
            video_width=cls._to_int(video_stream.get("width")),
            video_height=cls._to_int(video_stream.get("height")),
        )

    def probe(self, file_path: Path) -> MediaProbe:
        """Probes a media file. Raises ProbeFailed or ProbeParseError."""
        result = self.parse_report(self.get_report(file_path))
        self.logger.debug(
            f"PROBE: {Path(file_path).name} duration={result.duration_seconds:.2f}s "
            f"size={result.video_width}x{result.video_height}"
        )
        return result
