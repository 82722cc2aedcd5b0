"""
Progress reporting for PSEPower runs.

Every finished replication advances a ``ProgressReporter`` by one. The
reporter forwards ``(current, total)`` to a plain callable, so any function,
the console ``PrintReporter`` or the optional ``TqdmReporter`` can display
progress, and a GUI can hook in the same way.
"""

import sys
from typing import Callable, Optional, TextIO


class SimulationCancelled(Exception):
    """Raised when a power run is cancelled by the user."""


class ProgressReporter:
    """Counts finished replications and notifies a ``(current, total)`` callback.

    The callback fires on ``start``, whenever at least *update_every*
    replications finished since the last notification, and once the total
    is reached. Used as a context manager it starts on entry and finishes on
    a clean exit.

    Args:
        total: Replications expected over the whole run or sweep.
        callback: Called as ``callback(current, total)``.
        update_every: Minimum number of replications between two
            notifications. Defaults to about one per percent.
    """

    def __init__(
        self,
        total: int,
        callback: Callable[[int, int], None],
        update_every: Optional[int] = None,
    ):
        self.total = total
        self._callback = callback
        self._current = 0
        self._last_reported = 0
        self.update_every = update_every if update_every is not None else max(1, total // 100)

    @property
    def current(self) -> int:
        return self._current

    def _notify(self):
        self._last_reported = self._current
        self._callback(self._current, self.total)

    def start(self):
        self._current = 0
        self._notify()

    def advance(self, n: int = 1):
        self._current += n
        if self._current >= self.total or self._current - self._last_reported >= self.update_every:
            self._notify()

    def finish(self):
        """Report completion unless the last notification already did."""
        if self._current < self.total:
            self._current = self.total
            self._notify()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.finish()
        return False


class PrintReporter:
    """Single-line console progress: ``Progress: 45/100 replications (45.0%)``.

    Args:
        stream: Text stream to write to; ``sys.stderr`` when omitted.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    def __call__(self, current: int, total: int):
        if total <= 0:
            return
        stream = self._stream if self._stream is not None else sys.stderr
        stream.write(f"\rProgress: {current}/{total} replications ({100.0 * current / total:.1f}%)")
        if current >= total:
            stream.write("\n")
        stream.flush()


class TqdmReporter:
    """Progress bar through ``tqdm`` (imported on first use).

    Keyword arguments are passed to ``tqdm``.

    Usage::

        from psepower.progress import TqdmReporter
        model.find_power(subj_n=20, trial_n=24, progress_callback=TqdmReporter())
    """

    def __init__(self, **tqdm_kwargs):
        self._tqdm_kwargs = tqdm_kwargs
        self._bar = None

    def __call__(self, current: int, total: int):
        from tqdm import tqdm

        if self._bar is None:
            self._bar = tqdm(total=total, unit="rep", **self._tqdm_kwargs)
        if current > self._bar.n:
            self._bar.update(current - self._bar.n)
        if current >= total:
            self._bar.close()
            self._bar = None


def compute_total_replications(n_replications: int, n_sample_sizes: int = 1) -> int:
    """Replications of a single run (``n_sample_sizes=1``) or a subject-count sweep."""
    return n_replications * n_sample_sizes
