"""Error kinds raised by the encode pipeline and the job query boundary.

Pipeline errors (process, probe, duration) never escape a running job: the
orchestrator turns them into a terminal ``error`` state. ``MissingJob`` and
``JobNotReady`` are raised synchronously to whoever queries the registry.
"""

from typing import Optional, Sequence


class VtcError(Exception):
    """Base class for all vtc errors."""


class ProcessFailed(VtcError):
    """External tool exited with a non-zero code."""

    def __init__(self, cmd: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        name = self.cmd[0] if self.cmd else "process"
        super().__init__(f"{name} exited {returncode}\n{stderr}".rstrip())


class ProbeFailed(ProcessFailed):
    """ffprobe exited with a non-zero code."""


class ProbeParseError(VtcError):
    """ffprobe output was not valid JSON."""


class UnusableDuration(VtcError):
    """Probe succeeded but reported no positive duration."""


class MissingJob(VtcError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Missing job: {job_id}")


class JobNotReady(VtcError):
    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is not ready (status={status})")


class InvalidTransition(VtcError):
    """A patch tried to move a job along an edge the state machine does not have."""
