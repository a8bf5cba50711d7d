import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import Callable, IO, List, Optional, Sequence
from vtc.domain.errors import ProcessFailed

LineCallback = Callable[[str], None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    returncode: int
    stderr: str


def _pump(stream: Optional[IO[str]], callback: Optional[LineCallback], sink: Optional[List[str]]) -> None:
    if stream is None:
        return
    try:
        for line in stream:
            if sink is not None:
                sink.append(line)
            if callback is not None:
                callback(line)
    finally:
        stream.close()


def run_process(
    cmd: str,
    args: Sequence[str],
    on_stdout: Optional[LineCallback] = None,
    on_stderr: Optional[LineCallback] = None,
) -> ProcessResult:
    """Runs ``cmd args...`` to completion, streaming both pipes line by line.

    Each stream is drained by its own reader thread so callbacks fire while the
    process is still running. Text mode uses universal newlines, so ffmpeg's
    carriage-return progress updates arrive as separate lines.

    Returns the accumulated stderr on exit code 0, raises ProcessFailed otherwise.
    No retries.
    """
    full_cmd = [cmd, *args]
    logger.debug(f"PROCESS_START: {' '.join(full_cmd)}")

    process = subprocess.Popen(
        full_cmd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        universal_newlines=True,
        bufsize=1,
        errors="replace",
    )

    stderr_lines: List[str] = []
    readers = [
        threading.Thread(target=_pump, args=(process.stdout, on_stdout, None), daemon=True),
        threading.Thread(target=_pump, args=(process.stderr, on_stderr, stderr_lines), daemon=True),
    ]
    for reader in readers:
        reader.start()
    for reader in readers:
        reader.join()
    returncode = process.wait()

    stderr = "".join(stderr_lines)
    if returncode != 0:
        logger.debug(f"PROCESS_FAILED: {cmd} code={returncode}")
        raise ProcessFailed(full_cmd, returncode, stderr)
    return ProcessResult(returncode=returncode, stderr=stderr)
