"""Boundary operations used by the HTTP adapter and the CLI.

``JobService`` creates jobs and answers progress/artifact queries. It is the
only place that knows about job ids, work-dir naming and request defaults.
"""

import logging
import secrets
from pathlib import Path
from typing import Callable, Optional

from vtc.config.models import AppConfig
from vtc.domain.errors import JobNotReady, MissingJob
from vtc.domain.models import EncodeRequest, JobStatus, ProgressReport
from vtc.infrastructure.event_bus import EventBus
from vtc.infrastructure.ffmpeg import FFmpegAdapter
from vtc.infrastructure.ffprobe import FFprobeAdapter
from vtc.infrastructure.housekeeping import RetentionReaper
from vtc.pipeline.orchestrator import EncodeOrchestrator
from vtc.pipeline.registry import JobRegistry

JOB_ID_LENGTH = 10


def new_job_id() -> str:
    return secrets.token_urlsafe(JOB_ID_LENGTH)[:JOB_ID_LENGTH]


class JobService:
    def __init__(
        self,
        config: AppConfig,
        registry: JobRegistry,
        orchestrator: EncodeOrchestrator,
        reaper: Optional[RetentionReaper] = None,
        id_factory: Callable[[], str] = new_job_id,
    ):
        self.config = config
        self.registry = registry
        self.orchestrator = orchestrator
        self.reaper = reaper
        self.id_factory = id_factory
        self.logger = logging.getLogger(__name__)

    @property
    def work_dir(self) -> Path:
        return Path(self.config.general.work_dir)

    @property
    def upload_dir(self) -> Path:
        return self.work_dir / "uploads"

    def start(self):
        """Prepares the work dir and starts the retention reaper."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        if self.reaper is not None:
            self.reaper.start()

    def close(self, wait: bool = True):
        if self.reaper is not None:
            self.reaper.stop()
        self.orchestrator.shutdown(wait=wait)

    def output_path_for(self, job_id: str) -> Path:
        return self.work_dir / f"out-{job_id}.mp4"

    def download_name(self, job_id: str) -> str:
        return f"{self.config.server.download_prefix}-{job_id}.mp4"

    def _allocate_id(self) -> str:
        job_id = self.id_factory()
        while job_id in self.registry:
            job_id = self.id_factory()
        return job_id

    def start_job(self, input_path: Path, request: Optional[EncodeRequest] = None) -> str:
        """Registers a queued job for ``input_path`` and hands it to the orchestrator.

        Returns the job id before any encoding has happened. The job takes
        ownership of ``input_path`` and deletes it when it concludes.
        """
        request = request or self.config.defaults
        job_id = self._allocate_id()
        self.registry.create(
            job_id,
            status=JobStatus.QUEUED,
            percent=0.0,
            message="Queued…",
            input_path=Path(input_path),
            output_path=self.output_path_for(job_id),
        )
        self.logger.info(f"JOB_QUEUED: {job_id} target={request.target_mb}MB codec={request.codec} "
                         f"audio={request.audio_kbps}k auto_quality={request.auto_quality}")
        self.orchestrator.submit(job_id, request)
        return job_id

    def get_progress(self, job_id: str) -> ProgressReport:
        """Progress for ``job_id``; an unknown id yields status 'missing' rather than an error."""
        job = self.registry.get(job_id)
        if job is None:
            return ProgressReport.missing()
        return ProgressReport.for_job(job)

    def get_artifact(self, job_id: str) -> Path:
        """Path of the finished output. Raises MissingJob or JobNotReady."""
        job = self.registry.get(job_id)
        if job is None:
            raise MissingJob(job_id)
        if job.status != JobStatus.DONE or job.output_path is None:
            raise JobNotReady(job_id, job.status.value)
        return job.output_path


def build_service(config: AppConfig, event_bus: Optional[EventBus] = None) -> JobService:
    """Wires registry, adapters, orchestrator and reaper from config."""
    registry = JobRegistry(event_bus=event_bus, ttl_seconds=config.retention.ttl_seconds)
    orchestrator = EncodeOrchestrator(
        registry=registry,
        ffprobe_adapter=FFprobeAdapter(config.general.ffprobe_bin),
        ffmpeg_adapter=FFmpegAdapter(config.general.ffmpeg_bin),
        work_dir=config.general.work_dir,
        max_workers=config.general.max_concurrent_jobs,
    )
    reaper = RetentionReaper(registry, interval_seconds=config.retention.reap_interval_seconds)
    return JobService(config, registry, orchestrator, reaper=reaper)
