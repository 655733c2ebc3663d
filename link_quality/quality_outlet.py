"""Quality outlet — SignalQuality snapshots → LSL streams.

Two streams are published:
- ``SignalQuality`` (int32, irregular rate): lost, recovered, rssi, snr,
  link_score, one sample per snapshot.
- ``SignalQuality-IDR`` (string markers): the IDR code, pushed only when it
  changes, so a listener sees exactly one marker per loss-driven rotation.
"""

from __future__ import annotations

from typing import Optional

import pylsl

from .samples import SignalQuality


class QualityOutlet:
    """Broadcasts SignalQuality snapshots over Lab Streaming Layer.

    Pass ``outlet.push`` as the ``snapshot_callback`` of a QualityReporter.

    Parameters
    ----------
    source_id : str
        Unique identifier for the LSL streams (e.g. receiver serial).
    """

    CHANNEL_UNITS = {
        "lost": "packets",
        "recovered": "packets",
        "rssi": "raw",
        "snr": "dB",
        "link_score": "percent",
    }

    def __init__(self, source_id: str = "wfb_rx_0") -> None:
        self.source_id = source_id

        self._info = pylsl.StreamInfo(
            name="SignalQuality",
            type="LinkQuality",
            channel_count=len(SignalQuality.CHANNEL_LABELS),
            nominal_srate=pylsl.IRREGULAR_RATE,
            channel_format=pylsl.cf_int32,
            source_id=source_id,
        )
        self._idr_info = pylsl.StreamInfo(
            name="SignalQuality-IDR",
            type="Markers",
            channel_count=1,
            nominal_srate=pylsl.IRREGULAR_RATE,
            channel_format=pylsl.cf_string,
            source_id=f"{source_id}-idr",
        )
        self._add_channel_metadata()
        self._outlet: Optional[pylsl.StreamOutlet] = None
        self._idr_outlet: Optional[pylsl.StreamOutlet] = None
        self._last_idr_code: Optional[str] = None

    def _add_channel_metadata(self) -> None:
        channels = self._info.desc().append_child("channels")
        for label in SignalQuality.CHANNEL_LABELS:
            ch = channels.append_child("channel")
            ch.append_child_value("label", label)
            ch.append_child_value("unit", self.CHANNEL_UNITS[label])

    def start(self) -> None:
        """Create both LSL outlets."""
        self._outlet = pylsl.StreamOutlet(self._info)
        self._idr_outlet = pylsl.StreamOutlet(self._idr_info)
        self._last_idr_code = None
        print(f"[QualityOutlet] Started: {self.source_id}")

    def stop(self) -> None:
        """Destroy both outlets."""
        self._outlet = None
        self._idr_outlet = None
        print(f"[QualityOutlet] Stopped: {self.source_id}")

    def push(self, quality: SignalQuality) -> None:
        """Push one snapshot; emit an IDR marker if the code rotated."""
        if self._outlet is None or self._idr_outlet is None:
            raise RuntimeError("Call start() before push()")

        self._outlet.push_sample(quality.as_channels())
        if quality.idr_code != self._last_idr_code:
            self._idr_outlet.push_sample([quality.idr_code])
            self._last_idr_code = quality.idr_code
