"""Visualise SignalQuality over a simulated flight — antenna fade + loss burst.

Replays synthetic packet telemetry through the aggregator on a simulated
clock and samples a snapshot every 100 ms (10 Hz UI refresh):

  1. 0–4 s:  clean link, both antennas healthy.
  2. 4–7 s:  antenna 1 fades by 50 dB; diversity keeps the score up.
  3. 7–9 s:  both antennas fade; link score collapses.
  4. 8 s:    loss burst; IDR code rotates, lost counter spikes.
  5. 9–12 s: recovery.

Produces a figure saved to examples/quality_timeline.png.
"""

from __future__ import annotations

import sys
import os

# Allow imports from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import matplotlib.pyplot as plt

from link_quality.aggregator import WindowedTelemetryAggregator
from link_quality.receiver_feed import ReceiverFeed
from tests.simulators.link_simulator import LinkSimulator


def simulate_timeline(
    duration_s: float = 12.0,
    packet_rate: float = 500.0,
    report_rate: float = 10.0,
    seed: int = 42,
) -> dict:
    """Run the simulator → aggregator pipeline on a simulated clock.

    Returns a dict of numpy arrays keyed by snapshot field, plus ``t``.
    """
    sim_time = [0.0]
    aggregator = WindowedTelemetryAggregator(clock=lambda: sim_time[0])
    sim = LinkSimulator(packet_rate=packet_rate, seed=seed)
    sim.connect()
    feed = ReceiverFeed(sim, aggregator, name="sim")

    dt = 1.0 / packet_rate
    packets_per_report = int(packet_rate / report_rate)
    n_reports = int(duration_s * report_rate)

    series = {k: np.zeros(n_reports) for k in
              ("t", "rssi", "snr", "link_score", "lost", "recovered")}
    idr_changes = []
    last_idr = aggregator.idr_code
    loss_injected = False

    for i in range(n_reports):
        t = i / report_rate
        if t < 4.0 or t >= 9.0:
            sim.inject_fade()
        elif t < 7.0:
            sim.inject_fade(ant1_db=50.0)
        else:
            sim.inject_fade(ant1_db=50.0, ant2_db=45.0)
        if t >= 8.0 and not loss_injected:
            sim.inject_loss(40)
            loss_injected = True

        for _ in range(packets_per_report):
            feed.feed_packet(sim.read_packet())
            sim_time[0] += dt

        q = aggregator.compute_snapshot()
        series["t"][i] = sim_time[0]
        series["rssi"][i] = q.rssi
        series["snr"][i] = q.snr
        series["link_score"][i] = q.link_score
        series["lost"][i] = q.lost_last_second
        series["recovered"][i] = q.recovered_last_second
        if q.idr_code != last_idr:
            idr_changes.append((sim_time[0], q.idr_code))
            last_idr = q.idr_code

    series["idr_changes"] = idr_changes
    return series


def plot_timeline(series: dict) -> None:
    """Three stacked panels: raw RSSI/SNR, link score, FEC counters."""
    t = series["t"]
    fig, (ax_raw, ax_score, ax_fec) = plt.subplots(3, 1, figsize=(12, 9), sharex=True)
    fig.suptitle("Link Quality — Antenna Fade and Loss Burst", fontsize=14,
                 fontweight="bold")

    ax_raw.plot(t, series["rssi"], color="#2196F3", label="RSSI (best antenna)")
    ax_raw.plot(t, series["snr"], color="#FF9800", label="SNR (best antenna)")
    ax_raw.axvspan(4.0, 7.0, alpha=0.1, color="#FF9800", label="Ant 1 fade")
    ax_raw.axvspan(7.0, 9.0, alpha=0.15, color="red", label="Both antennas fade")
    ax_raw.set_ylabel("Raw mean")
    ax_raw.legend(fontsize=8, loc="upper right")

    ax_score.plot(t, series["link_score"], color="#4CAF50", linewidth=1.5)
    ax_score.set_ylim(0, 100)
    ax_score.set_ylabel("Link score")
    for ts, code in series["idr_changes"]:
        ax_score.axvline(ts, color="red", linestyle="--", alpha=0.5)
        ax_score.annotate(code, xy=(ts, 90), fontsize=7, color="red",
                          ha="left", style="italic")

    # 300/300 is the no-FEC-data sentinel; mask it out of the plot.
    stale = (series["lost"] == 300) & (series["recovered"] == 300)
    ax_fec.plot(t, np.where(stale, np.nan, series["lost"]), color="red",
                label="Lost / s")
    ax_fec.plot(t, np.where(stale, np.nan, series["recovered"]), color="#9C27B0",
                label="Recovered / s")
    ax_fec.set_xlabel("Time (s)")
    ax_fec.set_ylabel("Packets")
    ax_fec.legend(fontsize=8, loc="upper right")

    out_dir = os.path.dirname(os.path.abspath(__file__))
    out_path = os.path.join(out_dir, "quality_timeline.png")
    fig.savefig(out_path, dpi=150, bbox_inches="tight")
    print(f"Saved: {out_path}")
    plt.show()


if __name__ == "__main__":
    print("Simulating 12 s of link telemetry...")
    series = simulate_timeline()
    print(f"  {len(series['t'])} snapshots, "
          f"{len(series['idr_changes'])} IDR rotation(s)")

    print("Plotting timeline...")
    plot_timeline(series)
