import logging
from pathlib import Path
from typing import List, Optional
from rich.logging import RichHandler

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

def setup_logging(
    work_dir: Path,
    debug: bool = False,
    log_path: Optional[Path] = None,
    console: bool = False,
) -> logging.Logger:
    """
    Configure root logging for vtc.

    Always writes to a file (``<work_dir>/vtc.log`` unless log_path is given).
    With ``console=True`` (the ``serve`` command) records are mirrored to the
    terminal through rich.

    Args:
        work_dir: Directory holding uploads, outputs and pass logs; created if missing
        debug: If True, enable DEBUG level logging (full ffmpeg commands)
        log_path: Optional path to log file (overrides work_dir)
        console: Also log to stderr via RichHandler
    """
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    log_file = Path(log_path) if log_path else (work_dir / "vtc.log")
    log_file.parent.mkdir(parents=True, exist_ok=True)

    handlers: List[logging.Handler] = [logging.FileHandler(log_file)]
    if console:
        rich_handler = RichHandler(show_path=False, rich_tracebacks=True)
        rich_handler.setFormatter(logging.Formatter("%(message)s"))  # rich renders time and level itself
        handlers.append(rich_handler)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    logger = logging.getLogger("vtc")
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'}, console={'ON' if console else 'OFF'})")
    return logger
