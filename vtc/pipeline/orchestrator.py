"""Encode orchestrator for the two-pass, target-size job lifecycle.

Sequence per job: analyze → plan → pass 1 (stats) → pass 2 (final) → finalize.
Every state change goes through ``JobRegistry.patch``; the orchestrator keeps
no private copy of job state.

Jobs are executed on a bounded thread pool (``max_workers``). Jobs submitted
while every worker is busy stay ``queued`` until one frees up. Within a job
the passes run strictly in order. There is no cancellation.
"""

import concurrent.futures
import logging
from pathlib import Path
from typing import Optional

from vtc.domain.errors import UnusableDuration
from vtc.domain.models import EncodePlan, EncodeRequest, JobStatus
from vtc.infrastructure.ffmpeg import FFmpegAdapter
from vtc.infrastructure.ffprobe import FFprobeAdapter
from vtc.infrastructure.housekeeping import remove_quietly
from vtc.pipeline.planner import build_plan
from vtc.pipeline.progress import ProgressExtractor
from vtc.pipeline.registry import JobRegistry

# Overall percent slices: pass 1 owns 2-50, pass 2 owns 50-100
ANALYZE_PERCENT = 1.0
PASS1_SPAN = (2.0, 50.0)
PASS2_SPAN = (50.0, 100.0)


class EncodeOrchestrator:
    """Runs encode jobs against ffprobe/ffmpeg and reports into the registry.

    Args:
        registry: JobRegistry holding the job records.
        ffprobe_adapter: FFprobeAdapter used for media analysis.
        ffmpeg_adapter: FFmpegAdapter used for both encode passes.
        work_dir: Directory for pass logs.
        max_workers: Upper bound on concurrently running jobs.
    """

    def __init__(
        self,
        registry: JobRegistry,
        ffprobe_adapter: FFprobeAdapter,
        ffmpeg_adapter: FFmpegAdapter,
        work_dir: Path,
        max_workers: int = 2,
    ):
        self.registry = registry
        self.ffprobe_adapter = ffprobe_adapter
        self.ffmpeg_adapter = ffmpeg_adapter
        self.work_dir = Path(work_dir)
        self.max_workers = max_workers
        self.logger = logging.getLogger(__name__)
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="vtc-encode"
        )

    def submit(self, job_id: str, request: EncodeRequest) -> concurrent.futures.Future:
        """Schedules ``run`` on the worker pool and returns immediately."""
        return self._executor.submit(self.run, job_id, request)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)

    def _publish_progress(self, job_id: str, percent: float, message: str):
        self.registry.patch(job_id, percent=percent, message=message)

    def passlog_path(self, job_id: str) -> Path:
        return self.work_dir / f"passlog-{job_id}"

    def run(self, job_id: str, request: EncodeRequest) -> None:
        """Drives one job to a terminal state. Never raises for pipeline failures."""
        job = self.registry.get(job_id)
        if job is None:
            self.logger.error(f"JOB_MISSING: {job_id} (not in registry, nothing to run)")
            return

        try:
            self._encode(job_id, job.input_path, job.output_path, request)
        except Exception as exc:
            self.logger.error(f"JOB_FAILED: {job_id}: {exc}")
            current = self.registry.get(job_id)
            if current is not None and current.status == JobStatus.RUNNING:
                self.registry.patch(
                    job_id,
                    status=JobStatus.ERROR,
                    percent=0.0,
                    message="Error",
                    error=str(exc) or exc.__class__.__name__,
                )
        finally:
            self.ffmpeg_adapter.cleanup_passlog(self.passlog_path(job_id))
            remove_quietly(job.input_path)

    def _encode(self, job_id: str, input_path: Path, output_path: Path, request: EncodeRequest):
        self.registry.patch(job_id, status=JobStatus.RUNNING, percent=ANALYZE_PERCENT, message="Analyzing media…")
        self.logger.info(f"JOB_START: {job_id} input={Path(input_path).name} target={request.target_mb}MB codec={request.codec}")

        probe = self.ffprobe_adapter.probe(input_path)
        if probe.duration_seconds <= 0:
            raise UnusableDuration("Could not read duration.")

        plan = build_plan(probe, request)
        self._log_plan(job_id, plan)
        passlog = self.passlog_path(job_id)
        duration = probe.duration_seconds

        self.registry.patch(job_id, percent=PASS1_SPAN[0], message="Pass 1/2…")
        self.logger.info(f"JOB_PASS: {job_id} pass=1")
        self.ffmpeg_adapter.run_pass(
            input_path, plan, passlog, 1,
            on_progress=ProgressExtractor(job_id, duration, self._publish_progress, span=PASS1_SPAN),
        )

        self.registry.patch(job_id, percent=PASS2_SPAN[0], message="Pass 2/2…")
        self.logger.info(f"JOB_PASS: {job_id} pass=2")
        self.ffmpeg_adapter.run_pass(
            input_path, plan, passlog, 2, output_path,
            on_progress=ProgressExtractor(job_id, duration, self._publish_progress, span=PASS2_SPAN),
        )

        output_bytes = Path(output_path).stat().st_size
        self.registry.patch(
            job_id,
            status=JobStatus.DONE,
            percent=100.0,
            message="Done",
            output_bytes=output_bytes,
        )
        self.logger.info(f"JOB_DONE: {job_id} output={output_bytes / (1024 * 1024):.1f}MB")

    def _log_plan(self, job_id: str, plan: EncodePlan):
        scale = plan.scale_filter or "none"
        self.logger.info(
            f"JOB_PLAN: {job_id} codec={plan.video_codec} preset={plan.preset} scale={scale} "
            f"video={plan.video_bitrate_kbps}k audio={plan.audio_bitrate_kbps}k"
        )
