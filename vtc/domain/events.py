"""Domain events published by the job registry.

Events flow through the EventBus so the registry never needs to know who is
watching (CLI progress bar, logging hooks, tests).

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pydantic import BaseModel
from .models import Job


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobUpdated(Event):
    """Emitted after every merge-patch with the resulting snapshot."""

    job: Job


class JobExpired(Event):
    """Emitted when the reaper removes a terminal job past its retention window."""

    job_id: str
