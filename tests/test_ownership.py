import pandas as pd
import pytest

from gitrisk.config import AnalysisConfig
from gitrisk.filters import InvalidFilterError
from gitrisk.ownership import (
    OWNERSHIP_COLUMNS,
    analyze_ownership,
    bus_factor_summary,
    estimate_bus_factor,
    select_ownership,
)
from gitrisk.store import join_history, validate_changes, validate_commits


def _history(log_builder, entries):
    commits, changes = log_builder(entries)
    commits = validate_commits(commits)
    return join_history(commits, validate_changes(changes, commits=commits))


class TestEstimateBusFactor:
    def test_no_contributors(self):
        assert estimate_bus_factor([]) == 0
        assert estimate_bus_factor([0, 0]) == 0

    def test_single_contributor(self):
        assert estimate_bus_factor([10]) == 1

    def test_dominant_owner_with_few_contributors(self):
        assert estimate_bus_factor([80, 20]) == 1

    def test_dominant_owner_with_many_contributors_uses_coverage(self):
        # 80% of the work already covers 60%
        assert estimate_bus_factor([80, 10, 10]) == 1

    def test_even_split(self):
        assert estimate_bus_factor([25, 25, 25, 25]) == 3

    def test_exact_coverage_boundary(self):
        assert estimate_bus_factor([30, 30, 20, 20]) == 2

    def test_order_does_not_matter(self):
        assert estimate_bus_factor([10, 50, 40]) == estimate_bus_factor([50, 40, 10]) == 2

    @pytest.mark.parametrize("shares", [[1], [5, 5], [1, 1, 1], [9, 1, 1, 1, 1, 1], [3, 3, 3, 3, 3, 3, 3]])
    def test_bounded_by_contributors(self, shares):
        assert 1 <= estimate_bus_factor(shares) <= len(shares)

    def test_custom_coverage(self):
        config = AnalysisConfig(bus_factor_coverage=100.0)
        assert estimate_bus_factor([25, 25, 25, 25], config=config) == 4


class TestAnalyzeOwnership:
    def test_three_to_one_split(self, log_builder):
        history = _history(log_builder, [("A", ["x.js"]), ("A", ["x.js"]), ("A", ["x.js"]), ("B", ["x.js"])])
        row = analyze_ownership(history).set_index("filePath").loc["x.js"]
        assert row["primaryOwner"] == "A"
        assert row["ownershipPercentage"] == pytest.approx(75.0)
        assert row["totalContributors"] == 2
        assert row["busFactor"] == 1
        assert row["riskLevel"] == "high"
        assert [a["name"] for a in row["authors"]] == ["A", "B"]
        assert [a["percentage"] for a in row["authors"]] == pytest.approx([75.0, 25.0])

    def test_columns(self, log_builder):
        history = _history(log_builder, [("A", ["x.js"])])
        assert list(analyze_ownership(history).columns) == OWNERSHIP_COLUMNS

    def test_weighted_by_lines(self, log_builder):
        history = _history(log_builder, [("A", {"f.py": (10, 0)}), ("B", {"f.py": (20, 10)}), ("A", {"f.py": (5, 5)})])
        row = analyze_ownership(history).iloc[0]
        assert row["basis"] == "lines"
        assert row["totalLines"] == 50
        assert row["primaryOwner"] == "B"
        assert row["ownershipPercentage"] == pytest.approx(60.0)
        assert row["riskLevel"] == "medium"
        assert row["authors"][1]["commits"] == 2

    def test_falls_back_to_commit_counts(self):
        commits = validate_commits(
            [
                {"id": 1, "hash": "a", "author": "A", "timestamp": "2024-01-01T00:00:00Z"},
                {"id": 2, "hash": "b", "author": "B", "timestamp": "2024-01-02T00:00:00Z"},
                {"id": 3, "hash": "c", "author": "B", "timestamp": "2024-01-03T00:00:00Z"},
            ]
        )
        changes = validate_changes(
            [{"commit_id": i, "file_path": "logo.png"} for i in (1, 2, 3)],
            commits=commits,
        )
        row = analyze_ownership(join_history(commits, changes)).iloc[0]
        assert row["basis"] == "commits"
        assert row["primaryOwner"] == "B"
        assert row["ownershipPercentage"] == pytest.approx(200 / 3)

    def test_tie_goes_to_most_recent_contributor(self, log_builder):
        history = _history(log_builder, [("zed", ["t.py"]), ("amy", ["t.py"])])
        row = analyze_ownership(history).iloc[0]
        assert row["primaryOwner"] == "amy"
        assert row["ownershipPercentage"] == pytest.approx(50.0)

    def test_percentages_sum_to_100(self, log_builder):
        entries = [("A", {"f.py": (7, 0)}), ("B", {"f.py": (3, 1)}), ("C", {"f.py": (11, 2)}), ("D", ["g.py"])]
        for row in analyze_ownership(_history(log_builder, entries)).itertuples():
            assert sum(a["percentage"] for a in row.authors) == pytest.approx(100.0)
            assert 1 <= row.busFactor <= row.totalContributors

    def test_ordered_by_concentration(self, log_builder):
        entries = [("A", ["solo.py", "shared.py"]), ("B", ["shared.py"]), ("A", ["also_solo.py"])]
        df = analyze_ownership(_history(log_builder, entries))
        assert df["filePath"].tolist() == ["also_solo.py", "solo.py", "shared.py"]
        assert df.loc[0, "riskLevel"] == "critical"

    def test_last_modified(self, log_builder):
        history = _history(log_builder, [("A", ["f.py"]), ("B", ["f.py"])])
        assert analyze_ownership(history).loc[0, "lastModified"] == pd.Timestamp("2024-01-02 12:00", tz="UTC")

    def test_empty(self):
        df = analyze_ownership(join_history(validate_commits([]), validate_changes([])))
        assert df.empty
        assert list(df.columns) == OWNERSHIP_COLUMNS


class TestSelectOwnership:
    def test_risk_level_filter(self, log_builder):
        entries = [("A", ["solo.py", "shared.py"]), ("B", ["shared.py"])]
        df = analyze_ownership(_history(log_builder, entries))
        assert select_ownership(df, risk_level="critical")["filePath"].tolist() == ["solo.py"]
        assert select_ownership(df, risk_level="medium")["filePath"].tolist() == ["shared.py"]
        assert len(select_ownership(df)) == 2

    def test_unknown_risk_level(self, log_builder):
        df = analyze_ownership(_history(log_builder, [("A", ["a.py"])]))
        with pytest.raises(InvalidFilterError):
            select_ownership(df, risk_level="severe")


class TestBusFactorSummary:
    def test_summary(self, log_builder):
        entries = [("A", ["solo.py", "shared.py"]), ("B", ["shared.py"]), ("C", ["shared.py"])]
        summary = bus_factor_summary(analyze_ownership(_history(log_builder, entries)))
        assert summary["total_files"] == 2
        assert summary["critical_risk_files"] == 1
        assert summary["low_risk_files"] == 1
        assert summary["distribution"] == {1: 1, 2: 1}
        assert summary["average_bus_factor"] == pytest.approx(1.5)

    def test_empty(self):
        summary = bus_factor_summary(analyze_ownership(join_history(validate_commits([]), validate_changes([]))))
        assert summary["total_files"] == 0
        assert summary["critical_risk_files"] == 0
        assert summary["distribution"] == {}
        assert summary["average_bus_factor"] == 0.0
