"""In-memory job registry: the single shared mutable structure of the service.

Records are immutable ``Job`` snapshots swapped under a lock, so a reader
always sees either the state before a patch or the state after it. The
registry also owns output-file lifetime for terminal jobs via ``reap_expired``.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from vtc.domain.errors import InvalidTransition
from vtc.domain.events import JobExpired, JobUpdated
from vtc.domain.models import Job, JobStatus
from vtc.infrastructure.event_bus import EventBus
from vtc.infrastructure.housekeeping import remove_quietly

DEFAULT_TTL_SECONDS = 30 * 60

_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.QUEUED, JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.RUNNING, JobStatus.DONE, JobStatus.ERROR},
    JobStatus.DONE: {JobStatus.DONE},
    JobStatus.ERROR: {JobStatus.ERROR},
}


class JobRegistry:
    """Maps job id -> Job snapshot.

    Args:
        event_bus: Optional bus; receives JobUpdated after every patch and
            JobExpired after every reap.
        ttl_seconds: Retention window for terminal jobs, measured from the
            lazily stamped ``created_at`` anchor.
        clock: Wall-clock source (seconds), injectable for tests.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.event_bus = event_bus
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()

    def create(self, job_id: str, **fields: Any) -> Job:
        fields.pop("id", None)
        job = Job(id=job_id, **fields)
        with self._lock:
            if job_id in self._jobs:
                raise ValueError(f"Job already exists: {job_id}")
            self._jobs[job_id] = job
        self._publish(job)
        return job

    def patch(self, job_id: str, **fields: Any) -> Job:
        """Merges ``fields`` into the record (creating it if absent) and returns the new snapshot."""
        fields.pop("id", None)
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                updated = Job(id=job_id, **fields)
            else:
                if "status" in fields:
                    new_status = JobStatus(fields["status"])
                    if new_status not in _TRANSITIONS[current.status]:
                        raise InvalidTransition(
                            f"Job {job_id}: {current.status.value} -> {new_status.value} is not allowed"
                        )
                updated = Job.model_validate({**current.model_dump(), **fields})
            self._jobs[job_id] = updated

        self._publish(updated)
        return updated

    def _publish(self, job: Job):
        if self.event_bus is not None:
            self.event_bus.publish(JobUpdated(job=job))

    def get(self, job_id: str) -> Optional[Job]:
        """Current snapshot, or None when the id is unknown."""
        with self._lock:
            return self._jobs.get(job_id)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def snapshot(self) -> List[Job]:
        with self._lock:
            return list(self._jobs.values())

    def reap_expired(self, now: Optional[float] = None) -> List[str]:
        """One reaper pass. Returns the ids it removed.

        Every record without an anchor gets ``created_at = now`` on its first
        inspection. Terminal records older than ``ttl_seconds`` lose their output
        file (best-effort) and are dropped. Non-terminal records are never removed.
        """
        now = self.clock() if now is None else now
        expired: List[Job] = []
        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if job.created_at is None:
                    job = job.model_copy(update={"created_at": now})
                    self._jobs[job_id] = job
                if job.status.is_terminal and now - job.created_at > self.ttl_seconds:
                    expired.append(job)
                    del self._jobs[job_id]

        for job in expired:
            remove_quietly(job.output_path)
            self.logger.info(f"JOB_EXPIRED: {job.id} status={job.status.value}")
            if self.event_bus is not None:
                self.event_bus.publish(JobExpired(job_id=job.id))
        return [job.id for job in expired]
