"""Receiver feed — per-packet radio telemetry → WindowedTelemetryAggregator.

Architecture notes:
- The receiver (RTL8812 driver, simulator, replay) sits behind the
  ``ReceiverSource`` protocol and hands over one PacketTelemetry at a time.
- A packet may carry any subset of RSSI, SNR and FEC fields; only the
  present ones are recorded.
- Several feeds may share one aggregator; the aggregator serializes them.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from .aggregator import WindowedTelemetryAggregator


# ---------------------------------------------------------------------------
# Packet + receiver interface (swap for real driver or simulator)
# ---------------------------------------------------------------------------

@dataclass
class PacketTelemetry:
    """Radio telemetry attached to one received packet.

    Attributes
    ----------
    rssi : tuple[int, int] or None
        (ant1, ant2) RSSI, 0..255.
    snr : tuple[int, int] or None
        (ant1, ant2) SNR in dB, signed.
    fec : tuple[int, int, int] or None
        (total, recovered, lost) FEC counters for the batch this packet closed.
    """

    rssi: Optional[Tuple[int, int]] = None
    snr: Optional[Tuple[int, int]] = None
    fec: Optional[Tuple[int, int, int]] = None


class ReceiverSource(Protocol):
    """Protocol for a diversity receiver producing packet telemetry."""

    def connect(self) -> bool: ...
    def read_packet(self) -> PacketTelemetry:
        """Block until the next packet and return its telemetry."""
        ...
    def disconnect(self) -> None: ...


# ---------------------------------------------------------------------------
# Receiver → aggregator
# ---------------------------------------------------------------------------

class ReceiverFeed:
    """Reads packets from a receiver and records them into an aggregator.

    Parameters
    ----------
    source : ReceiverSource
        Receiver implementing the ReceiverSource protocol.
    aggregator : WindowedTelemetryAggregator
        Shared aggregator; also read by the reporting side.
    name : str
        Label used in log lines (e.g. ``"rx0"``).
    """

    def __init__(
        self,
        source: ReceiverSource,
        aggregator: WindowedTelemetryAggregator,
        name: str = "rx0",
    ) -> None:
        self.source = source
        self.aggregator = aggregator
        self.name = name
        self.packets_fed = 0
        self._started = False
        self._running = threading.Event()

    def start(self) -> None:
        """Connect to the receiver."""
        self.source.connect()
        self._started = True
        self._running.set()
        print(f"[ReceiverFeed] Started: {self.name}")

    def stop(self) -> None:
        """Stop the loop and disconnect the receiver."""
        self._running.clear()
        if self._started:
            self.source.disconnect()
            self._started = False
        print(f"[ReceiverFeed] Stopped: {self.name} ({self.packets_fed} packets)")

    def run(self) -> None:
        """Main loop — read packets, record telemetry.

        Call from a dedicated thread or as the main loop.
        """
        if not self._started:
            raise RuntimeError("Call start() before run()")

        while self._running.is_set():
            try:
                packet = self.source.read_packet()
            except Exception:
                time.sleep(0.001)
                continue

            self.feed_packet(packet)

    def feed_packet(self, packet: PacketTelemetry) -> None:
        """Record the fields present in one packet."""
        if packet.rssi is not None:
            self.aggregator.record_rssi(*packet.rssi)
        if packet.snr is not None:
            self.aggregator.record_snr(*packet.snr)
        if packet.fec is not None:
            self.aggregator.record_fec(*packet.fec)
        self.packets_fed += 1

    @property
    def is_running(self) -> bool:
        return self._running.is_set()
