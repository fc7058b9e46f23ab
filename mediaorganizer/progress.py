"""Console progress reporting with rate-limited output."""

from __future__ import annotations

import math
import threading
import time

_PRINT_INTERVAL = 1.0


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as 'Ns', 'Nm Ns' or 'Nh Nm Ns'."""
    whole = int(math.copysign(math.floor(abs(seconds) + 0.5), seconds))
    if whole < 60:
        return f"{whole}s"
    if whole < 3600:
        minutes, secs = divmod(whole, 60)
        return f"{minutes}m {secs}s"
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h {minutes}m {secs}s"


class ProgressReporter:
    """Counts processed items and prints progress at most once a second."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.processed = 0
        self._lock = threading.Lock()
        self._start = time.monotonic()
        self._last_print = self._start

    def increment(self, n: int = 1) -> None:
        """Add n to the processed count and maybe print."""
        with self._lock:
            self.processed += n
        self.maybe_print()

    def maybe_print(self) -> None:
        """Print progress unless it was printed less than a second ago."""
        now = time.monotonic()
        with self._lock:
            if now - self._last_print < _PRINT_INTERVAL:
                return
            self._last_print = now
        self.print_progress()

    def print_progress(self) -> None:
        """Print the current count, percentage, elapsed time and ETA."""
        with self._lock:
            processed, total = self.processed, self.total

        if total == 0:
            print(f"Processed {processed} files")
            return

        percentage = processed / total * 100
        elapsed = time.monotonic() - self._start
        eta = elapsed / processed * (total - processed) if processed > 0 else 0.0
        print(
            f"Progress: {processed}/{total} ({percentage:.1f}%) - "
            f"Elapsed: {format_duration(elapsed)}, ETA: {format_duration(eta)}"
        )