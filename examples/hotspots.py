"""
Example of ranking the files of a project by churn and flagging hotspots.

Hotspots are files that change far more often than the rest of the codebase. They are where
defects and merge conflicts tend to concentrate, so they are good candidates for refactoring.

This example demonstrates:
1. Registering commit and change rows with an InMemoryHistoryStore
2. Ranking files by churn
3. Using the complexity (net growth) signal instead of change counts
4. Paging through results
"""

from datetime import datetime, timedelta, timezone

import numpy as np

from gitrisk import InMemoryHistoryStore, ProjectHistory, paginate


def synthetic_history(n_commits=200, seed=7):
    rng = np.random.default_rng(seed)
    files = [f"src/module_{i}.py" for i in range(25)] + ["src/core/engine.py", "src/core/router.py"]
    weights = np.ones(len(files))
    weights[-2:] = 12.0  # the core keeps changing
    weights /= weights.sum()
    authors = ["alice", "bob", "carol", "dave"]

    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    commits, changes = [], []
    for idx in range(1, n_commits + 1):
        commits.append(
            {
                "id": idx,
                "hash": f"{idx:040x}",
                "author": authors[rng.integers(len(authors))],
                "timestamp": start + timedelta(hours=int(idx * 11)),
            }
        )
        touched = rng.choice(files, size=rng.integers(1, 4), replace=False, p=weights)
        for path in touched:
            changes.append(
                {
                    "commit_id": idx,
                    "file_path": path,
                    "lines_added": int(rng.integers(0, 60)),
                    "lines_deleted": int(rng.integers(0, 30)),
                }
            )
    return commits, changes


if __name__ == "__main__":
    commits, changes = synthetic_history()
    store = InMemoryHistoryStore({"demo": (commits, changes)})
    project = ProjectHistory(store, "demo")

    print("Top files by churn:")
    hotspots = project.hotspots()
    print(hotspots.head(10)[["file_path", "change_count", "total_changes", "risk_level", "is_hotspot"]])

    print("\nOnly critical hotspots since March:")
    print(project.hotspots(start_date="2024-03-01", only_hotspots=True, risk_level="critical"))

    print("\nHotspots by net growth (more than 500 lines):")
    grown = project.hotspots(metric="complexity", min_complexity=500, only_hotspots=True)
    print(grown[["file_path", "complexity", "change_count"]])

    print("\nSecond page of the ranking:")
    rows, meta = paginate(hotspots, page=2, page_size=5)
    print(rows[["file_path", "change_count"]])
    print(meta)

    print("\nActivity per author:")
    print(project.author_hotspots())
