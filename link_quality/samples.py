"""Telemetry samples and the SignalQuality snapshot.

Each sample is stamped with the aggregator's monotonic clock at ingestion and
stored by value inside a TelemetryWindow.  ``SignalQuality`` is the output
produced on every ``compute_snapshot()`` call and handed to the display /
broadcast side.

Field ranges:
- RSSI per antenna: 0..255 (only 0..126 is meaningful for the link score).
- SNR per antenna: signed small int, dB (0..60 is the scored span).
- FEC counters: unsigned 32-bit packet counts per receiver batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class RssiSample:
    """RSSI reading for both diversity antennas."""

    timestamp: float
    ant1: int
    ant2: int


@dataclass(frozen=True)
class SnrSample:
    """SNR reading for both diversity antennas."""

    timestamp: float
    ant1: int
    ant2: int


@dataclass(frozen=True)
class FecBatch:
    """Forward-error-correction counters reported for one receiver batch.

    Attributes
    ----------
    packets_total : int
        All packets seen in the batch.
    packets_recovered : int
        Packets repaired by FEC.
    packets_lost : int
        Packets FEC could not repair.  Any value > 0 rotates the IDR code.
    """

    timestamp: float
    packets_total: int
    packets_recovered: int
    packets_lost: int


@dataclass(frozen=True)
class SignalQuality:
    """Composite link quality over the last window.

    Attributes
    ----------
    lost_last_second : int
        Sum of lost packets in the window, or the stale sentinel (300).
    recovered_last_second : int
        Sum of FEC-recovered packets in the window, or the stale sentinel (300).
    rssi : int
        Best antenna's mean RSSI (raw, not mapped).
    snr : int
        Best antenna's mean SNR (raw, not mapped).
    link_score : int
        Best antenna's weighted RSSI/SNR score on a 0..100 scale.
    idr_code : str
        Four lowercase letters; changes whenever packet loss is reported.
    """

    CHANNEL_LABELS = ["lost", "recovered", "rssi", "snr", "link_score"]

    lost_last_second: int
    recovered_last_second: int
    rssi: int
    snr: int
    link_score: int
    idr_code: str

    def as_channels(self) -> List[int]:
        """Numeric fields in ``CHANNEL_LABELS`` order."""
        return [
            self.lost_last_second,
            self.recovered_last_second,
            self.rssi,
            self.snr,
            self.link_score,
        ]

    def is_fec_stale(self, sentinel: tuple[int, int] = (300, 300)) -> bool:
        """Return True if the FEC counters carry the no-data sentinel."""
        return (self.recovered_last_second, self.lost_last_second) == tuple(sentinel)

    def __repr__(self) -> str:
        return (
            f"SignalQuality(rssi={self.rssi}, snr={self.snr}, "
            f"score={self.link_score}, lost={self.lost_last_second}, "
            f"recovered={self.recovered_last_second}, idr={self.idr_code!r})"
        )
