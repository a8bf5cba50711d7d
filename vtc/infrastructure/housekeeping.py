import logging
import threading
from pathlib import Path
from typing import Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from vtc.pipeline.registry import JobRegistry

logger = logging.getLogger(__name__)


def remove_quietly(path: Optional[Union[str, Path]]) -> bool:
    """Best-effort unlink. Returns True if a file was removed; never raises OSError."""
    if not path:
        return False
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        logger.debug(f"CLEANUP_FAILED: {path}: {exc}")
        return False


class RetentionReaper:
    """Periodically purges terminal jobs from the registry in a background thread."""

    def __init__(self, registry: "JobRegistry", interval_seconds: float = 300.0):
        self.registry = registry
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _loop(self):
        while not self._stop_event.wait(self.interval_seconds):
            try:
                removed = self.registry.reap_expired()
            except Exception:
                logger.exception("Reaper tick failed")
                continue
            if removed:
                logger.info(f"Reaped {len(removed)} expired job(s): {', '.join(removed)}")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="vtc-reaper", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
