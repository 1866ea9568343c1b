import pandas as pd
import pytest

from gitrisk.config import AnalysisConfig
from gitrisk.filters import InvalidFilterError
from gitrisk.hotspots import (
    AUTHOR_HOTSPOT_COLUMNS,
    HOTSPOT_COLUMNS,
    author_hotspots,
    detect_hotspots,
    file_change_frequency,
    select_hotspots,
)
from gitrisk.store import join_history, validate_changes, validate_commits


def _history(log_builder, entries):
    commits, changes = log_builder(entries)
    commits = validate_commits(commits)
    return join_history(commits, validate_changes(changes, commits=commits))


class TestDetectHotspots:
    def test_file_touched_six_times_is_a_hotspot(self, log_builder):
        history = _history(log_builder, [("alice", ["a.js"])] * 6)
        hotspots = detect_hotspots(history)
        row = hotspots.set_index("file_path").loc["a.js"]
        assert row["change_count"] == 6
        assert bool(row["is_hotspot"])
        assert row["risk_level"] == "medium"

    def test_file_touched_five_times_is_not(self, log_builder):
        history = _history(log_builder, [("alice", ["b.js"])] * 5)
        row = detect_hotspots(history).set_index("file_path").loc["b.js"]
        assert row["change_count"] == 5
        assert not bool(row["is_hotspot"])
        assert row["risk_level"] == "low"

    def test_columns(self, log_builder):
        history = _history(log_builder, [("alice", {"a.py": (4, 1)})])
        assert list(detect_hotspots(history).columns) == HOTSPOT_COLUMNS

    def test_distinct_commits(self):
        commits = validate_commits([{"id": 1, "hash": "a", "author": "x", "timestamp": "2024-01-01T00:00:00Z"}])
        changes = validate_changes(
            [
                {"commit_id": 1, "file_path": "a.py", "lines_added": 1, "lines_deleted": 0},
                {"commit_id": 1, "file_path": "a.py", "lines_added": 2, "lines_deleted": 0},
            ],
            commits=commits,
        )
        history = join_history(commits, changes)
        assert file_change_frequency(history).to_dict() == {"a.py": 1}
        row = detect_hotspots(history).iloc[0]
        assert row["change_count"] == 1
        assert row["total_changes"] == 3

    def test_ranked_by_total_changes(self, log_builder):
        history = _history(
            log_builder,
            [
                ("alice", {"small.py": (1, 0), "big.py": (100, 20), "mid.py": (10, 0)}),
                ("bob", {"small.py": (1, 0), "mid.py": (0, 5)}),
            ],
        )
        hotspots = detect_hotspots(history)
        assert hotspots["file_path"].tolist() == ["big.py", "mid.py", "small.py"]
        assert hotspots["total_changes"].tolist() == [120, 15, 2]
        assert hotspots.set_index("file_path").loc["mid.py", "authors"] == 2

    def test_ties_broken_by_change_count_then_path(self, log_builder):
        history = _history(
            log_builder,
            [
                ("alice", {"b.py": (2, 0), "a.py": (2, 0), "c.py": (1, 0)}),
                ("alice", {"c.py": (1, 0)}),
            ],
        )
        assert detect_hotspots(history)["file_path"].tolist() == ["c.py", "a.py", "b.py"]

    def test_missing_line_counts_count_as_zero(self):
        commits = validate_commits([{"id": 1, "hash": "a", "author": "x", "timestamp": "2024-01-01T00:00:00Z"}])
        changes = validate_changes([{"commit_id": 1, "file_path": "logo.png"}], commits=commits)
        row = detect_hotspots(join_history(commits, changes)).iloc[0]
        assert row["change_count"] == 1
        assert row["total_changes"] == 0
        assert row["complexity"] == 0

    def test_flagging_is_monotonic_in_threshold(self, log_builder):
        entries = [("alice", ["a.py", "b.py", "c.py"][: (i % 3) + 1]) for i in range(12)]
        history = _history(log_builder, entries)
        previous = None
        for threshold in range(0, 15):
            flagged = set(detect_hotspots(history, min_complexity=threshold).query("is_hotspot")["file_path"])
            if previous is not None:
                assert flagged <= previous
            previous = flagged

    def test_threshold_comes_from_config(self, log_builder):
        history = _history(log_builder, [("alice", ["a.js"])] * 3)
        assert not detect_hotspots(history).loc[0, "is_hotspot"]
        assert detect_hotspots(history, config=AnalysisConfig(hotspot_threshold=2)).loc[0, "is_hotspot"]

    def test_complexity_metric(self, log_builder):
        history = _history(
            log_builder,
            [
                ("alice", {"grows.py": (50, 0), "shrinks.py": (0, 0)}),
                ("alice", {"grows.py": (10, 5), "shrinks.py": (0, 30)}),
            ],
        )
        hotspots = detect_hotspots(history, metric="complexity", min_complexity=20).set_index("file_path")
        assert hotspots.loc["grows.py", "complexity"] == 55
        assert hotspots.loc["shrinks.py", "complexity"] == 0
        assert bool(hotspots.loc["grows.py", "is_hotspot"])
        assert not bool(hotspots.loc["shrinks.py", "is_hotspot"])

    def test_invalid_arguments(self, log_builder):
        history = _history(log_builder, [("alice", ["a.js"])])
        with pytest.raises(InvalidFilterError):
            detect_hotspots(history, metric="cyclomatic")
        with pytest.raises(InvalidFilterError):
            detect_hotspots(history, min_complexity=-1)

    def test_empty_history(self):
        hotspots = detect_hotspots(join_history(validate_commits([]), validate_changes([])))
        assert hotspots.empty
        assert list(hotspots.columns) == HOTSPOT_COLUMNS


class TestSelectHotspots:
    @pytest.fixture
    def ranked(self, log_builder):
        entries = [("alice", ["hot.py", "warm.py"])] * 6 + [("alice", ["hot.py"])] * 6 + [("bob", ["cold.py"])]
        return detect_hotspots(_history(log_builder, entries))

    def test_only_hotspots(self, ranked):
        assert set(select_hotspots(ranked, only_hotspots=True)["file_path"]) == {"hot.py", "warm.py"}

    def test_min_changes(self, ranked):
        assert select_hotspots(ranked, min_changes=7)["file_path"].tolist() == ["hot.py"]

    def test_risk_level(self, ranked):
        assert select_hotspots(ranked, risk_level="high")["file_path"].tolist() == ["hot.py"]
        assert select_hotspots(ranked, risk_level="all")["file_path"].tolist() == ranked["file_path"].tolist()

    def test_keeps_order(self, ranked):
        assert select_hotspots(ranked)["file_path"].tolist() == ["hot.py", "warm.py", "cold.py"]

    def test_negative_min_changes(self, ranked):
        with pytest.raises(InvalidFilterError):
            select_hotspots(ranked, min_changes=-1)


class TestAuthorHotspots:
    def test_scores(self, log_builder):
        entries = [("alice", [f"f{i}.py" for i in range(30)])] * 10 + [("bob", ["x.py"])]
        df = author_hotspots(_history(log_builder, entries))
        assert list(df.columns) == AUTHOR_HOTSPOT_COLUMNS
        assert df["author"].tolist() == ["alice", "bob"]

        alice = df.iloc[0]
        assert alice["files_touched"] == 30
        assert alice["total_commits"] == 10
        assert alice["risk_score"] == pytest.approx(0.4 * 10 + 0.6 * 30)
        assert alice["hotspots"] == 2
        assert df.iloc[1]["hotspots"] == 0

    def test_hotspot_bucket_is_capped(self, log_builder):
        entries = [("alice", [f"f{i}.py" for i in range(400)])]
        df = author_hotspots(_history(log_builder, entries))
        assert df.loc[0, "hotspots"] == 20

    def test_last_activity(self, log_builder):
        df = author_hotspots(_history(log_builder, [("alice", ["a.py"]), ("alice", ["b.py"])]))
        assert df.loc[0, "last_activity"] == pd.Timestamp("2024-01-02 12:00", tz="UTC")

    def test_empty(self):
        df = author_hotspots(join_history(validate_commits([]), validate_changes([])))
        assert df.empty
