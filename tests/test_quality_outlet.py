"""Tests for QualityOutlet — LSL broadcast of snapshots.

StreamOutlet is replaced by a recorder so no network stream is opened.
"""

import pytest

pylsl = pytest.importorskip("pylsl")

from link_quality import quality_outlet
from link_quality.quality_outlet import QualityOutlet
from link_quality.samples import SignalQuality


class RecordingOutlet:
    def __init__(self, info, *args, **kwargs):
        self.name = info.name()
        self.samples = []

    def push_sample(self, sample, *args, **kwargs):
        self.samples.append(list(sample))


@pytest.fixture
def outlet(monkeypatch):
    monkeypatch.setattr(quality_outlet.pylsl, "StreamOutlet", RecordingOutlet)
    out = QualityOutlet(source_id="test_rx")
    out.start()
    return out


def _quality(idr: str) -> SignalQuality:
    return SignalQuality(0, 1, 70, 30, 64, idr)


class TestQualityOutlet:

    def test_push_before_start_raises(self):
        with pytest.raises(RuntimeError):
            QualityOutlet().push(_quality("aaaa"))

    def test_numeric_channels(self, outlet):
        outlet.push(_quality("aaaa"))
        assert outlet._outlet.name == "SignalQuality"
        assert outlet._outlet.samples == [[0, 1, 70, 30, 64]]

    def test_idr_marker_only_on_change(self, outlet):
        for code in ["aaaa", "aaaa", "qzkx", "qzkx", "mbte"]:
            outlet.push(_quality(code))
        assert len(outlet._outlet.samples) == 5
        assert outlet._idr_outlet.samples == [["aaaa"], ["qzkx"], ["mbte"]]

    def test_stop(self, outlet):
        outlet.stop()
        with pytest.raises(RuntimeError):
            outlet.push(_quality("aaaa"))
