import re
from typing import Callable, Optional, Tuple

# 'time=00:01:02.50' in ffmpeg's stderr status line
TIME_REGEX = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")

ProgressSink = Callable[[str, float, str], None]


def parse_elapsed_seconds(text: str) -> Optional[float]:
    match = TIME_REGEX.search(text)
    if not match:
        return None
    h, m, s = map(float, match.groups())
    return h * 3600 + m * 60 + s


class ProgressExtractor:
    """Turns one ffmpeg invocation's stderr into a non-decreasing percent.

    Built fresh for every pass. ``last_percent`` is pass-relative (0-100); the
    value published to ``sink`` is mapped linearly into ``span`` so each pass can
    own a slice of the job's overall progress bar.
    """

    def __init__(
        self,
        job_id: str,
        duration_seconds: float,
        sink: ProgressSink,
        span: Tuple[float, float] = (0.0, 100.0),
    ):
        self.job_id = job_id
        self.duration_seconds = duration_seconds
        self.sink = sink
        self.span = span
        self.last_percent = 0.0

    def __call__(self, chunk: str) -> Optional[float]:
        """Feeds one stderr line; returns the published overall percent, or None."""
        if not self.duration_seconds or self.duration_seconds <= 0:
            return None
        elapsed = parse_elapsed_seconds(chunk)
        if elapsed is None:
            return None

        percent = min(100.0, max(0.0, elapsed / self.duration_seconds * 100.0))
        if percent < self.last_percent:
            return None
        self.last_percent = percent

        start, end = self.span
        overall = start + (end - start) * percent / 100.0
        self.sink(self.job_id, overall, f"Encoding… {overall:.1f}%")
        return overall
