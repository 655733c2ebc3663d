"""Quality reporter — polls the aggregator and publishes SignalQuality snapshots.

Architecture notes:
- Output thread calls ``compute_snapshot()`` at ``output_rate`` Hz (UI refresh
  or telemetry broadcast cadence).
- Double buffer lets the display read the latest snapshot without waiting on
  the aggregator lock.
- Optional callback (e.g. ``QualityOutlet.push``) receives every snapshot.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from .aggregator import WindowedTelemetryAggregator
from .samples import SignalQuality


# ---------------------------------------------------------------------------
# DoubleBuffer (thread-safe snapshot hand-off to the display)
# ---------------------------------------------------------------------------

class DoubleBuffer:
    """Two-slot swap buffer for passing SignalQuality snapshots to the display.

    The reporter thread writes to the *back* slot, then swaps.  Readers get
    the *front* slot.  A lock guards the swap only.
    """

    def __init__(self) -> None:
        self._front: Optional[SignalQuality] = None
        self._back: Optional[SignalQuality] = None
        self._lock = threading.Lock()

    def write(self, quality: SignalQuality) -> None:
        """Write a new snapshot (called by reporter thread)."""
        self._back = quality
        with self._lock:
            self._front, self._back = self._back, self._front

    def read(self) -> Optional[SignalQuality]:
        """Read the latest snapshot."""
        with self._lock:
            return self._front


# ---------------------------------------------------------------------------
# QualityReporter
# ---------------------------------------------------------------------------

class QualityReporter:
    """Periodic consumer of a WindowedTelemetryAggregator.

    Usage::

        reporter = QualityReporter(aggregator, output_rate=10.0,
                                   snapshot_callback=outlet.push)
        reporter.start()
        ...
        quality = reporter.get_snapshot()   # from the UI thread
        ...
        reporter.stop()

    Parameters
    ----------
    aggregator : WindowedTelemetryAggregator
        The aggregator shared with the receiver feeds.
    output_rate : float
        Snapshots per second (default 10).
    snapshot_callback : callable or None
        Invoked with each new SignalQuality.
    """

    def __init__(
        self,
        aggregator: WindowedTelemetryAggregator,
        output_rate: float = 10.0,
        snapshot_callback: Optional[Callable[[SignalQuality], None]] = None,
    ) -> None:
        if output_rate <= 0:
            raise ValueError(f"output_rate must be positive, got {output_rate}")

        self.aggregator = aggregator
        self.output_rate = output_rate
        self.snapshot_callback = snapshot_callback
        self.snapshots_published = 0

        self._double_buffer = DoubleBuffer()
        self._output_thread: Optional[threading.Thread] = None
        self._running = threading.Event()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the output thread."""
        self._running.set()
        self._output_thread = threading.Thread(
            target=self._output_loop, name="quality-output", daemon=True
        )
        self._output_thread.start()
        print(f"[QualityReporter] Started @ {self.output_rate} Hz")

    def stop(self) -> None:
        """Signal the output thread to stop and wait for it."""
        self._running.clear()
        if self._output_thread:
            self._output_thread.join(timeout=2.0)
            self._output_thread = None
        print(f"[QualityReporter] Stopped ({self.snapshots_published} snapshots)")

    def get_snapshot(self) -> Optional[SignalQuality]:
        """Return the latest SignalQuality (non-blocking), or ``None``."""
        return self._double_buffer.read()

    def poll_once(self) -> SignalQuality:
        """Compute and publish one snapshot synchronously."""
        quality = self.aggregator.compute_snapshot()
        self._double_buffer.write(quality)
        self.snapshots_published += 1

        if self.snapshot_callback is not None:
            try:
                self.snapshot_callback(quality)
            except Exception as exc:
                print(f"[QualityReporter] WARNING: callback failed: {exc!r}")
        return quality

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    # ------------------------------------------------------------------
    # Output thread
    # ------------------------------------------------------------------

    def _output_loop(self) -> None:
        """Publish snapshots at the target output rate."""
        interval = 1.0 / self.output_rate
        while self._running.is_set():
            t_start = time.perf_counter()

            self.poll_once()

            elapsed = time.perf_counter() - t_start
            sleep_time = max(0.0, interval - elapsed)
            time.sleep(sleep_time)
