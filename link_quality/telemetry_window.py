"""Time-bounded sample window with lazy age eviction.

Stores timestamped samples (anything with a ``timestamp`` attribute) in a
deque ordered by arrival.  Samples are stamped from one monotonic clock under
the aggregator lock, so arrival order is also timestamp order and eviction
only ever pops from the left.

The window is not thread-safe on its own; WindowedTelemetryAggregator
serializes every access.
"""

from __future__ import annotations

from collections import deque
from typing import Generic, Iterator, Optional, TypeVar

T = TypeVar("T")


class TelemetryWindow(Generic[T]):
    """Samples no older than *duration* seconds, evicted on demand.

    Parameters
    ----------
    duration : float
        Window length in seconds (default 1 s).
    """

    def __init__(self, duration: float = 1.0) -> None:
        self.duration = duration
        self._samples: deque[T] = deque()

    # ------------------------------------------------------------------
    # Push / evict
    # ------------------------------------------------------------------

    def push(self, sample: T) -> None:
        """Append one sample.  No eviction happens here."""
        self._samples.append(sample)

    def evict(self, now: float) -> int:
        """Drop samples with ``timestamp < now - duration``.

        Returns
        -------
        int
            Number of samples removed.
        """
        cutoff = now - self.duration
        removed = 0
        while self._samples and self._samples[0].timestamp < cutoff:
            self._samples.popleft()
            removed += 1
        return removed

    def clear(self) -> None:
        self._samples.clear()

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    @property
    def newest_timestamp(self) -> Optional[float]:
        """Timestamp of the most recent sample, or ``None``."""
        return self._samples[-1].timestamp if self._samples else None

    @property
    def oldest_timestamp(self) -> Optional[float]:
        """Timestamp of the oldest sample, or ``None``."""
        return self._samples[0].timestamp if self._samples else None

    def __iter__(self) -> Iterator[T]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return (
            f"TelemetryWindow(duration={self.duration}, "
            f"stored={len(self)})"
        )
