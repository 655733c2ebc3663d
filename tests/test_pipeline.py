"""Tests for the collaborators around the aggregator — ReceiverFeed,
DoubleBuffer, QualityReporter, SignalQuality.

These run without LSL; the simulator stands in for the radio.
"""

import threading
import time

import numpy as np
import pytest

from link_quality.aggregator import QualityConfig, WindowedTelemetryAggregator
from link_quality.receiver_feed import PacketTelemetry, ReceiverFeed
from link_quality.reporter import DoubleBuffer, QualityReporter
from link_quality.samples import SignalQuality
from tests.simulators.link_simulator import LinkSimulator


def _quality(rssi: int = 50, idr: str = "abcd") -> SignalQuality:
    return SignalQuality(
        lost_last_second=1,
        recovered_last_second=2,
        rssi=rssi,
        snr=20,
        link_score=40,
        idr_code=idr,
    )


def _long_window() -> WindowedTelemetryAggregator:
    return WindowedTelemetryAggregator(QualityConfig(window_seconds=60.0))


# ======================================================================
# SignalQuality
# ======================================================================

class TestSignalQuality:

    def test_as_channels_order(self):
        q = _quality()
        assert q.as_channels() == [1, 2, 50, 20, 40]
        assert len(q.as_channels()) == len(SignalQuality.CHANNEL_LABELS)

    def test_is_fec_stale(self):
        stale = SignalQuality(300, 300, 0, 0, 0, "aaaa")
        assert stale.is_fec_stale()
        assert not _quality().is_fec_stale()

    def test_frozen(self):
        q = _quality()
        with pytest.raises(AttributeError):
            q.rssi = 10

    def test_repr(self):
        assert "SignalQuality" in repr(_quality())


# ======================================================================
# ReceiverFeed
# ======================================================================

class TestReceiverFeed:

    def test_feed_packet_records_present_fields(self):
        agg = _long_window()
        feed = ReceiverFeed(LinkSimulator(), agg)
        feed.feed_packet(PacketTelemetry(rssi=(40, 80)))
        feed.feed_packet(PacketTelemetry(snr=(10, 30), fec=(8, 2, 0)))

        status = agg.window_status()
        assert status["rssi"]["samples"] == 1
        assert status["snr"]["samples"] == 1
        assert status["fec"]["samples"] == 1
        assert feed.packets_fed == 2

    def test_run_before_start_raises(self):
        feed = ReceiverFeed(LinkSimulator(), _long_window())
        with pytest.raises(RuntimeError):
            feed.run()

    def test_simulated_link_snapshot(self):
        """Noise-free simulator → snapshot equals configured means."""
        agg = _long_window()
        sim = LinkSimulator(
            rssi_means=(70.0, 90.0), snr_means=(30.0, 20.0), add_noise=False
        )
        feed = ReceiverFeed(sim, agg)
        feed.start()
        for _ in range(80):
            feed.feed_packet(sim.read_packet())
        feed.stop()

        q = agg.compute_snapshot()
        assert q.rssi == 90
        assert q.snr == 30
        # 10 FEC blocks of 8 packets, no loss
        assert q.lost_last_second == 0
        assert q.recovered_last_second == 0
        assert q.idr_code == "aaaa"

    def test_fade_on_one_antenna_keeps_best(self):
        agg = _long_window()
        sim = LinkSimulator(
            rssi_means=(70.0, 70.0), snr_means=(30.0, 30.0), add_noise=False
        )
        sim.connect()
        sim.inject_fade(ant1_db=40.0)
        feed = ReceiverFeed(sim, agg)
        for _ in range(10):
            feed.feed_packet(sim.read_packet())

        rssi1, rssi2 = agg.average_rssi()
        assert rssi1 == pytest.approx(30.0)
        assert agg.compute_snapshot().rssi == 70

    def test_loss_burst_rotates_idr(self):
        agg = _long_window()
        sim = LinkSimulator(add_noise=False, seed=3)
        sim.connect()
        sim.inject_loss(5)
        feed = ReceiverFeed(sim, agg)
        for _ in range(16):
            feed.feed_packet(sim.read_packet())

        q = agg.compute_snapshot()
        assert q.lost_last_second == 5
        assert q.idr_code != "aaaa"

    def test_concurrent_feeds(self):
        """N feeds × M packets → N×M RSSI samples in the window."""
        n_feeds, per_feed = 4, 400
        agg = _long_window()
        feeds = []
        for i in range(n_feeds):
            sim = LinkSimulator(seed=i)
            sim.connect()
            feeds.append((ReceiverFeed(sim, agg, name=f"rx{i}"), sim))

        def pump(feed, sim):
            for _ in range(per_feed):
                feed.feed_packet(sim.read_packet())

        threads = [threading.Thread(target=pump, args=fs) for fs in feeds]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert agg.window_status()["rssi"]["samples"] == n_feeds * per_feed

    def test_run_loop_in_thread(self):
        agg = _long_window()
        feed = ReceiverFeed(LinkSimulator(), agg)
        feed.start()
        thread = threading.Thread(target=feed.run, daemon=True)
        thread.start()

        deadline = time.monotonic() + 2.0
        while feed.packets_fed < 50 and time.monotonic() < deadline:
            time.sleep(0.005)
        feed.stop()
        thread.join(timeout=2.0)

        assert not thread.is_alive()
        assert feed.packets_fed >= 50
        assert not feed.is_running


# ======================================================================
# DoubleBuffer
# ======================================================================

class TestDoubleBuffer:

    def test_read_empty(self):
        assert DoubleBuffer().read() is None

    def test_latest_snapshot_wins(self):
        db = DoubleBuffer()
        db.write(_quality(rssi=10))
        db.write(_quality(rssi=20))
        assert db.read().rssi == 20


# ======================================================================
# QualityReporter
# ======================================================================

class TestQualityReporter:

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            QualityReporter(_long_window(), output_rate=0)

    def test_poll_once(self):
        agg = _long_window()
        agg.record_rssi(40, 80)
        received = []
        reporter = QualityReporter(agg, snapshot_callback=received.append)

        assert reporter.get_snapshot() is None
        q = reporter.poll_once()
        assert q.rssi == 80
        assert reporter.get_snapshot() == q
        assert received == [q]
        assert reporter.snapshots_published == 1

    def test_failing_callback_does_not_propagate(self):
        def boom(_quality):
            raise ValueError("display gone")

        reporter = QualityReporter(_long_window(), snapshot_callback=boom)
        q = reporter.poll_once()
        assert reporter.get_snapshot() == q

    def test_background_thread_publishes(self):
        agg = _long_window()
        agg.record_snr(25, 12)
        reporter = QualityReporter(agg, output_rate=100.0)
        reporter.start()
        assert reporter.is_running

        deadline = time.monotonic() + 2.0
        while reporter.snapshots_published < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        reporter.stop()

        assert not reporter.is_running
        assert reporter.snapshots_published >= 3
        assert reporter.get_snapshot().snr == 25

    def test_snapshot_series_tracks_fade(self):
        """Link score drops while both antennas fade, recovers after."""
        clock_now = [0.0]
        agg = WindowedTelemetryAggregator(
            QualityConfig(window_seconds=0.2), clock=lambda: clock_now[0]
        )
        sim = LinkSimulator(
            rssi_means=(100.0, 90.0), snr_means=(40.0, 35.0), add_noise=False
        )
        sim.connect()
        feed = ReceiverFeed(sim, agg)
        reporter = QualityReporter(agg)

        scores = []
        for step in range(30):
            if 10 <= step < 20:
                sim.inject_fade(60.0, 60.0)
            else:
                sim.inject_fade()
            for _ in range(50):
                feed.feed_packet(sim.read_packet())
                clock_now[0] += 0.002
            scores.append(reporter.poll_once().link_score)

        scores = np.array(scores)
        assert scores[:10].min() > scores[12:20].max()
        assert scores[22:].min() > scores[12:20].max()
