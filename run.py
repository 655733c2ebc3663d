import time
import threading
from tests.simulators.link_simulator import LinkSimulator
from link_quality.aggregator import WindowedTelemetryAggregator
from link_quality.receiver_feed import ReceiverFeed
from link_quality.reporter import QualityReporter
from link_quality.quality_outlet import QualityOutlet

# 1. One aggregator shared by the receiver side and the display side
aggregator = WindowedTelemetryAggregator()

# 2. Start simulated diversity receivers (two adapters, one link)
feeds = [
    ReceiverFeed(LinkSimulator(realtime=True, seed=0), aggregator, name="rx0"),
    ReceiverFeed(LinkSimulator(realtime=True, seed=1, rssi_means=(55.0, 65.0)),
                 aggregator, name="rx1"),
]
for feed in feeds:
    feed.start()
    threading.Thread(target=feed.run, daemon=True).start()

# 3. Broadcast snapshots over LSL at 10 Hz
outlet = QualityOutlet()
outlet.start()
reporter = QualityReporter(aggregator, output_rate=10.0, snapshot_callback=outlet.push)
reporter.start()

# 4. Print the latest snapshot once per second
while True:
    quality = reporter.get_snapshot()
    if quality:
        print(quality)
    time.sleep(1.0)
