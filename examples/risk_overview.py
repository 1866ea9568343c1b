"""
Example of producing a dashboard summary for a project, with caching.

This example demonstrates:
1. Loading thresholds from a JSON file
2. Composing the overview: totals, risk counts, riskiest files and the monthly debt trend
3. Caching results on disk and invalidating them after new history arrives
4. Turning on library logging
"""

import json
import os
import tempfile
from datetime import datetime, timedelta, timezone

from gitrisk import AnalysisConfig, DiskCache, InMemoryHistoryStore, ProjectHistory
from gitrisk.logging import add_stream_handler, set_log_level


def monthly_history(months=14):
    start = datetime(2024, 1, 5, tzinfo=timezone.utc)
    commits, changes = [], []
    idx = 0
    for month in range(months):
        for week in range(4):
            idx += 1
            author = ["ana", "ben", "chen"][(month + week) % 3]
            commits.append(
                {"id": idx, "hash": f"h{idx}", "author": author, "timestamp": start + timedelta(days=30 * month + 7 * week)}
            )
            files = ["core/state.py", "core/reducer.py"] if week % 2 == 0 else [f"ui/page_{month}.tsx"]
            for path in files:
                changes.append({"commit_id": idx, "file_path": path, "lines_added": 20 + week, "lines_deleted": 5})
    return commits, changes


if __name__ == "__main__":
    set_log_level("INFO")
    add_stream_handler()

    with tempfile.TemporaryDirectory() as tmp:
        config_path = os.path.join(tmp, "risk.json")
        with open(config_path, "w") as f:
            json.dump({"hotspot_threshold": 8, "trend_months": 6}, f)
        config = AnalysisConfig.from_file(config_path)

        store = InMemoryHistoryStore({"frontend": monthly_history()})
        cache = DiskCache(filepath=os.path.join(tmp, "cache.gz"))
        project = ProjectHistory(store, "frontend", config=config, cache_backend=cache)

        overview = project.overview()
        print("\nOverview:")
        for key in ("totalFiles", "totalCommits", "contributors", "totalLOC", "totalHotspots", "highCouplingRisks", "knowledgeRisks"):
            print(f"  {key}: {overview[key]}")
        print("  riskSnapshots:", overview["riskSnapshots"])
        print("  technicalDebtTrend:")
        for point in overview["technicalDebtTrend"]:
            print(f"    {point['month']}: {point['score']}")
        print("  analysisStatus:", overview["analysisStatus"])

        # served from the cache this time
        project.overview()
        print("\nCache stats:", cache.get_cache_stats())

        store.add_project("frontend", *monthly_history(months=15))
        print("Invalidated entries:", project.invalidate_cache())
        print("Commits after refresh:", project.overview()["totalCommits"])
