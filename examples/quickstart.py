"""debriscast quickstart: run one cycle over a small TLE catalog."""

import logging
from datetime import datetime, timezone

from debriscast import CycleRunner, SnapshotStore
from debriscast.data.tle import catalog_from_tle
from debriscast.engine.store import snapshot_to_dict

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

tle_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9993
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439596
""".strip()

store = SnapshotStore()
runner = CycleRunner(feed=lambda: catalog_from_tle(tle_text), store=store)
runner.run_once(epoch=datetime(2024, 2, 15, tzinfo=timezone.utc))

snapshot = store.latest_snapshot()
stats = snapshot_to_dict(snapshot)
print(f"Tracked objects:   {stats['total_tracked']}")
print(f"Kessler index:     {stats['kessler_risk_index']} ({stats['kessler_label']})")
print(f"Conjunctions/day:  {stats['conjunctions_per_day']:.2f}")
print(f"25-year compliance: {stats['compliance']['rate']}")
for regime in stats["regimes"]:
    print(f"{regime['regime']:>5}: {regime['total']} now, {regime['projected_total_5y']:.0f} in 5 years")

for event in store.conjunction_events(limit=5):
    print(f"{event.tca} | {event.primary_id} vs {event.secondary_id} | "
          f"{event.miss_distance_km:.3f} km | Pc={event.probability:.2e} ({event.risk_level.value})")
