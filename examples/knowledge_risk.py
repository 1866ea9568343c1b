"""
Example of analyzing who owns the knowledge of each file, and how concentrated it is.

A file mostly written by one person is a knowledge risk: if they leave, nobody else knows it
well. The bus factor is the number of contributors who together hold most of that knowledge.

This example demonstrates:
1. Per-file ownership with author shares
2. Filtering by risk level
3. Summarizing bus factors across the project
4. Tuning thresholds with AnalysisConfig
"""

from datetime import datetime, timedelta, timezone

from gitrisk import AnalysisConfig, InMemoryHistoryStore, ProjectHistory


def team_history():
    start = datetime(2024, 6, 1, tzinfo=timezone.utc)
    plan = [
        ("alice", {"billing/invoice.py": (120, 0), "billing/tax.py": (80, 0)}),
        ("alice", {"billing/invoice.py": (40, 10)}),
        ("bob", {"api/routes.py": (60, 0), "api/schemas.py": (45, 0)}),
        ("carol", {"api/routes.py": (30, 5), "api/schemas.py": (20, 2)}),
        ("dave", {"api/routes.py": (25, 10)}),
        ("alice", {"billing/tax.py": (15, 3)}),
        ("bob", {"billing/invoice.py": (4, 1)}),
        ("erin", {"deploy/pipeline.yml": (35, 0)}),
    ]
    commits, changes = [], []
    for idx, (author, files) in enumerate(plan, start=1):
        commits.append({"id": idx, "hash": f"c{idx}", "author": author, "timestamp": start + timedelta(days=idx)})
        for path, (added, deleted) in files.items():
            changes.append({"commit_id": idx, "file_path": path, "lines_added": added, "lines_deleted": deleted})
    return commits, changes


if __name__ == "__main__":
    store = InMemoryHistoryStore({1: team_history()})
    project = ProjectHistory(store, 1, name="payments")

    print("File ownership:")
    ownership = project.file_ownership()
    print(ownership[["filePath", "primaryOwner", "ownershipPercentage", "totalContributors", "busFactor", "riskLevel"]])

    print("\nContributors of api/routes.py:")
    for author in ownership.set_index("filePath").loc["api/routes.py", "authors"]:
        print(f"  - {author['name']}: {author['percentage']:.1f}% ({author['commits']} commits)")

    print("\nCritical knowledge risks:")
    print(project.file_ownership(risk_level="critical")[["filePath", "primaryOwner"]])

    print("\nBus factor summary:")
    print(project.bus_factor())

    print("\nWith a stricter sole-owner rule (65%):")
    strict = ProjectHistory(store, 1, config=AnalysisConfig(sole_owner_percentage=65.0))
    print(strict.file_ownership()[["filePath", "busFactor"]])
