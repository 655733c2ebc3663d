"""Windowed telemetry aggregator — RSSI / SNR / FEC → SignalQuality.

Producers (receiver threads) call ``record_rssi``, ``record_snr`` and
``record_fec`` at packet rate.  A consumer (UI refresh, telemetry broadcast)
calls ``compute_snapshot()`` at its own cadence.

Architecture notes:
- One ``threading.Lock`` guards all three windows and the IDR code.  Public
  methods acquire it exactly once and call ``_locked`` helpers, so the lock
  never needs to be re-entrant.
- Eviction is lazy: writes only append, reads drop anything older than
  ``now - window_seconds`` first.
- Diversity semantics: the best antenna wins for RSSI, SNR and link score.

Data flow:
  ReceiverFeed → record_* → TelemetryWindow ×3 → compute_snapshot → SignalQuality
"""

from __future__ import annotations

import random
import string
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from .samples import FecBatch, RssiSample, SignalQuality, SnrSample
from .telemetry_window import TelemetryWindow


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class QualityConfig:
    """Window length and scoring policy.

    Parameters
    ----------
    window_seconds : float
        Age limit for every sample window (default 1 s).
    rssi_range : tuple[float, float]
        RSSI input span mapped onto ``score_range``.
    snr_range : tuple[float, float]
        SNR input span (dB) mapped onto ``score_range``.
    score_range : tuple[float, float]
        Output span of the mapped values (0..100).
    rssi_weight, snr_weight : float
        Link score = rssi_weight * mapped_rssi + snr_weight * mapped_snr.
    fec_stale_sentinel : tuple[int, int]
        (recovered, lost) reported when no FEC batch is in the window.
        Consumers read (300, 300) as "no FEC data", keep it as is.
    idr_code_length : int
        Letters in the IDR code.
    initial_idr_code : str
        IDR code before the first loss event.
    """

    window_seconds: float = 1.0
    rssi_range: Tuple[float, float] = (0.0, 126.0)
    snr_range: Tuple[float, float] = (0.0, 60.0)
    score_range: Tuple[float, float] = (0.0, 100.0)
    rssi_weight: float = 0.5
    snr_weight: float = 0.5
    fec_stale_sentinel: Tuple[int, int] = (300, 300)
    idr_code_length: int = 4
    initial_idr_code: str = "aaaa"

    @property
    def weights(self) -> Tuple[float, float]:
        return self.rssi_weight, self.snr_weight


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def map_range(
    value: float,
    in_min: float,
    in_max: float,
    out_min: float,
    out_max: float,
) -> float:
    """Linearly map *value* from [in_min, in_max] to [out_min, out_max], clamped."""
    mapped = out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)
    return max(out_min, min(out_max, mapped))


def generate_idr_code(length: int = 4, rng: Optional[random.Random] = None) -> str:
    """Return *length* uniformly random lowercase letters."""
    rng = rng or random
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(length))


def mean_antennas(window: TelemetryWindow) -> Tuple[float, float]:
    """Per-antenna arithmetic mean of an RSSI or SNR window.

    Returns ``(0.0, 0.0)`` for an empty window.
    """
    if len(window) == 0:
        return 0.0, 0.0
    values = np.array([(s.ant1, s.ant2) for s in window], dtype=np.float64)
    ant1, ant2 = values.mean(axis=0)
    return float(ant1), float(ant2)


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class WindowedTelemetryAggregator:
    """Rolling one-second view of link telemetry.

    Usage::

        aggregator = WindowedTelemetryAggregator()
        feed = ReceiverFeed(receiver, aggregator)      # producer side
        reporter = QualityReporter(aggregator)         # consumer side
        ...
        quality = aggregator.compute_snapshot()

    Parameters
    ----------
    config : QualityConfig or None
        Window and scoring policy.  Defaults match the deployed receiver.
    clock : callable
        Monotonic time source in seconds (default ``time.monotonic``).
    rng : random.Random or None
        Source for IDR code letters.
    """

    def __init__(
        self,
        config: Optional[QualityConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or QualityConfig()
        self._clock = clock
        self._rng = rng or random.Random()

        window = self.config.window_seconds
        self._rssi: TelemetryWindow[RssiSample] = TelemetryWindow(window)
        self._snr: TelemetryWindow[SnrSample] = TelemetryWindow(window)
        self._fec: TelemetryWindow[FecBatch] = TelemetryWindow(window)
        self._idr_code = self.config.initial_idr_code
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def record_rssi(self, ant1: int, ant2: int) -> None:
        """Append an RSSI reading for both antennas."""
        with self._lock:
            self._rssi.push(RssiSample(self._clock(), ant1, ant2))

    def record_snr(self, ant1: int, ant2: int) -> None:
        """Append an SNR reading for both antennas."""
        with self._lock:
            self._snr.push(SnrSample(self._clock(), ant1, ant2))

    def record_fec(self, total: int, recovered: int, lost: int) -> None:
        """Append FEC counters; any loss rotates the IDR code."""
        with self._lock:
            if lost > 0:
                self._idr_code = generate_idr_code(
                    self.config.idr_code_length, self._rng
                )
            self._fec.push(FecBatch(self._clock(), total, recovered, lost))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def average_rssi(self) -> Tuple[float, float]:
        """Mean RSSI per antenna over the window, ``(0.0, 0.0)`` if empty."""
        with self._lock:
            return self._average_locked(self._rssi, self._clock())

    def average_snr(self) -> Tuple[float, float]:
        """Mean SNR per antenna over the window, ``(0.0, 0.0)`` if empty."""
        with self._lock:
            return self._average_locked(self._snr, self._clock())

    def accumulate_fec(self) -> Tuple[int, int]:
        """Return ``(recovered_total, lost_total)`` over the window.

        Returns the stale sentinel (300, 300) when the window holds no batch.
        """
        with self._lock:
            return self._accumulate_fec_locked(self._clock())

    def compute_snapshot(self) -> SignalQuality:
        """Build a SignalQuality from the current window contents.

        Always succeeds; empty windows yield zero averages and the FEC
        sentinel.
        """
        cfg = self.config
        with self._lock:
            now = self._clock()
            rssi1, rssi2 = self._average_locked(self._rssi, now)
            snr1, snr2 = self._average_locked(self._snr, now)

            score_lo, score_hi = cfg.score_range
            mapped_rssi1 = map_range(rssi1, *cfg.rssi_range, score_lo, score_hi)
            mapped_rssi2 = map_range(rssi2, *cfg.rssi_range, score_lo, score_hi)
            mapped_snr1 = map_range(snr1, *cfg.snr_range, score_lo, score_hi)
            mapped_snr2 = map_range(snr2, *cfg.snr_range, score_lo, score_hi)

            w_rssi, w_snr = cfg.weights
            score1 = w_rssi * mapped_rssi1 + w_snr * mapped_snr1
            score2 = w_rssi * mapped_rssi2 + w_snr * mapped_snr2

            recovered, lost = self._accumulate_fec_locked(now)

            quality = SignalQuality(
                lost_last_second=int(lost),
                recovered_last_second=int(recovered),
                # Raw means, best antenna wins.
                rssi=int(max(rssi1, rssi2)),
                snr=int(max(snr1, snr2)),
                link_score=int(max(score1, score2)),
                idr_code=self._idr_code,
            )

            self._evict_all_locked(now)
        return quality

    @property
    def idr_code(self) -> str:
        with self._lock:
            return self._idr_code

    # ------------------------------------------------------------------
    # Maintenance / diagnostics
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Drop all windowed samples.  The IDR code is kept."""
        with self._lock:
            self._rssi.clear()
            self._snr.clear()
            self._fec.clear()

    def window_status(self) -> Dict[str, object]:
        """Return per-window diagnostic info after eviction."""
        with self._lock:
            self._evict_all_locked(self._clock())
            status: Dict[str, object] = {}
            for name, window in (
                ("rssi", self._rssi),
                ("snr", self._snr),
                ("fec", self._fec),
            ):
                status[name] = {
                    "samples": len(window),
                    "oldest_ts": window.oldest_timestamp,
                    "newest_ts": window.newest_timestamp,
                }
            status["idr_code"] = self._idr_code
            return status

    # ------------------------------------------------------------------
    # Lock-held helpers
    # ------------------------------------------------------------------

    def _average_locked(
        self, window: TelemetryWindow, now: float
    ) -> Tuple[float, float]:
        window.evict(now)
        return mean_antennas(window)

    def _accumulate_fec_locked(self, now: float) -> Tuple[int, int]:
        self._fec.evict(now)
        if len(self._fec) == 0:
            return self.config.fec_stale_sentinel

        # Python ints: sums of u32 counters cannot wrap.
        recovered = sum(batch.packets_recovered for batch in self._fec)
        lost = sum(batch.packets_lost for batch in self._fec)
        return recovered, lost

    def _evict_all_locked(self, now: float) -> None:
        self._rssi.evict(now)
        self._snr.evict(now)
        self._fec.evict(now)

    def __repr__(self) -> str:
        return (
            f"WindowedTelemetryAggregator(window={self.config.window_seconds}s, "
            f"rssi={len(self._rssi)}, snr={len(self._snr)}, fec={len(self._fec)})"
        )
