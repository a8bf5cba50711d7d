import threading
from typing import Optional
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from vtc.domain.events import JobUpdated
from vtc.domain.models import Job
from vtc.infrastructure.event_bus import EventBus


class JobProgressView:
    """Rich progress bar bound to a single job's JobUpdated events.

    ``wait()`` blocks until the job reaches a terminal state and returns the
    final snapshot.
    """

    def __init__(self, bus: EventBus, job_id: Optional[str] = None, console: Optional[Console] = None):
        self.bus = bus
        self.job_id = job_id
        self.console = console or Console()
        self.last: Optional[Job] = None
        self._finished = threading.Event()
        self._progress = Progress(
            TextColumn("[bold blue]{task.fields[job_id]}"),
            BarColumn(),
            TextColumn("{task.percentage:>5.1f}%"),
            TextColumn("{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
        )
        self._task: Optional[TaskID] = None
        self.bus.subscribe(JobUpdated, self.on_job_updated)

    def on_job_updated(self, event: JobUpdated):
        job = event.job
        if self.job_id is None:
            self.job_id = job.id
        if job.id != self.job_id:
            return
        self.last = job
        if self._task is not None:
            self._progress.update(self._task, completed=job.percent, description=job.message)
        if job.status.is_terminal:
            self._finished.set()

    def __enter__(self):
        self._progress.start()
        self._task = self._progress.add_task("Queued…", total=100, job_id=self.job_id or "")
        return self

    def __exit__(self, exc_type, exc, tb):
        self._progress.stop()
        self.bus.unsubscribe(JobUpdated, self.on_job_updated)
        return False

    def bind(self, job_id: str):
        self.job_id = job_id
        if self._task is not None:
            self._progress.update(self._task, job_id=job_id)

    def wait(self, timeout: Optional[float] = None) -> Optional[Job]:
        self._finished.wait(timeout)
        return self.last
