"""
.. module:: hotspots
   :platform: Unix, Windows
   :synopsis: Change-frequency ranking and hotspot classification of files


"""

import pandas as pd
from pandas import DataFrame

from gitrisk.config import AnalysisConfig, classify_risk
from gitrisk.filters import InvalidFilterError, filter_risk_level, validate_metric

HOTSPOT_COLUMNS = [
    "file_path",
    "change_count",
    "total_changes",
    "risk_level",
    "authors",
    "last_modified",
    "complexity",
    "is_hotspot",
]

AUTHOR_HOTSPOT_COLUMNS = [
    "author",
    "files_touched",
    "total_commits",
    "lines_added",
    "lines_deleted",
    "last_activity",
    "risk_score",
    "hotspots",
]


def empty_hotspots():
    return DataFrame(
        {
            "file_path": pd.Series(dtype="object"),
            "change_count": pd.Series(dtype="int64"),
            "total_changes": pd.Series(dtype="int64"),
            "risk_level": pd.Series(dtype="object"),
            "authors": pd.Series(dtype="int64"),
            "last_modified": pd.Series(dtype="datetime64[ns, UTC]"),
            "complexity": pd.Series(dtype="int64"),
            "is_hotspot": pd.Series(dtype="bool"),
        }
    )


def file_change_frequency(history):
    """Number of distinct commits touching each file.

    A file changed twice within one commit counts once.

    Returns:
        pandas.Series: change count indexed by file path
    """
    if history.empty:
        return pd.Series(dtype="int64", name="change_count")
    return history.groupby("file_path")["commit_id"].nunique().astype("int64").rename("change_count")


def detect_hotspots(history, config=None, metric="change_count", min_complexity=None):
    """Ranks files by churn and flags hotspots.

    Args:
        history (DataFrame): joined, already filtered history (see :func:`gitrisk.store.join_history`)
        config (Optional[AnalysisConfig]): thresholds; defaults to AnalysisConfig()
        metric (str): signal compared against the threshold, ``"change_count"`` (distinct commits)
            or ``"complexity"`` (net line growth, floored at zero, as a size proxy for complexity)
        min_complexity (Optional[float]): threshold for the chosen signal. Defaults to
            ``config.hotspot_threshold``.

    Returns:
        DataFrame: one row per file with columns
            - file_path (str)
            - change_count (int): distinct commits touching the file
            - total_changes (int): lines added plus deleted over all its changes
            - risk_level (str): change_count classified with ``config.hotspot_risk``
            - authors (int): distinct authors
            - last_modified (Timestamp): latest commit touching the file
            - complexity (int): net line growth, never negative
            - is_hotspot (bool): signal strictly above the threshold

        Ordered by total_changes desc, change_count desc, file_path asc.
    """
    config = config or AnalysisConfig()
    metric = validate_metric(metric)
    threshold = config.hotspot_threshold if min_complexity is None else min_complexity
    if threshold < 0:
        raise InvalidFilterError(f"hotspot threshold must be >= 0, got {threshold}")

    if history.empty:
        return empty_hotspots()

    added = history["lines_added"].fillna(0)
    deleted = history["lines_deleted"].fillna(0)
    df = (
        history.assign(_churn=added + deleted, _net=added - deleted)
        .groupby("file_path")
        .agg(
            change_count=("commit_id", "nunique"),
            total_changes=("_churn", "sum"),
            authors=("author", "nunique"),
            last_modified=("timestamp", "max"),
            complexity=("_net", "sum"),
        )
        .reset_index()
    )

    df["change_count"] = df["change_count"].astype("int64")
    df["total_changes"] = df["total_changes"].astype("int64")
    df["authors"] = df["authors"].astype("int64")
    df["complexity"] = df["complexity"].clip(lower=0).astype("int64")
    df["risk_level"] = df["change_count"].map(lambda c: classify_risk(c, config.hotspot_risk))

    signal = df["complexity"] if metric == "complexity" else df["change_count"]
    df["is_hotspot"] = (signal > threshold).astype(bool)

    df = df.sort_values(
        ["total_changes", "change_count", "file_path"],
        ascending=[False, False, True],
        kind="mergesort",
    )
    return df[HOTSPOT_COLUMNS].reset_index(drop=True)


def select_hotspots(hotspots, only_hotspots=False, min_changes=None, risk_level=None):
    """Applies the caller's result filters to a ranked hotspot frame, keeping its order."""
    out = hotspots
    if only_hotspots:
        out = out[out["is_hotspot"]]
    if min_changes is not None:
        if min_changes < 0:
            raise InvalidFilterError(f"min_changes must be >= 0, got {min_changes}")
        out = out[out["change_count"] >= min_changes]
    return filter_risk_level(out.reset_index(drop=True), risk_level, "risk_level")


def author_hotspots(history):
    """Activity concentration per author.

    The risk score weights breadth (files touched) above volume (commits):
    ``0.4 * total_commits + 0.6 * files_touched``, and ``hotspots`` buckets it in tens, capped at 20.

    Returns:
        DataFrame: columns in AUTHOR_HOTSPOT_COLUMNS, ordered by total_commits desc then author
    """
    if history.empty:
        return DataFrame({c: pd.Series(dtype="object") for c in AUTHOR_HOTSPOT_COLUMNS})

    df = (
        history.groupby("author")
        .agg(
            files_touched=("file_path", "nunique"),
            total_commits=("commit_id", "nunique"),
            lines_added=("lines_added", "sum"),
            lines_deleted=("lines_deleted", "sum"),
            last_activity=("timestamp", "max"),
        )
        .reset_index()
    )
    for col in ("files_touched", "total_commits", "lines_added", "lines_deleted"):
        df[col] = df[col].astype("int64")

    df["risk_score"] = 0.4 * df["total_commits"] + 0.6 * df["files_touched"]
    df["hotspots"] = (df["risk_score"] // 10).clip(upper=20).astype("int64")

    df = df.sort_values(["total_commits", "author"], ascending=[False, True], kind="mergesort")
    return df[AUTHOR_HOTSPOT_COLUMNS].reset_index(drop=True)
