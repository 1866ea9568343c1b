"""
.. module:: coupling
   :platform: Unix, Windows
   :synopsis: Temporal coupling, i.e. files that keep changing in the same commits


"""

from collections import Counter
from itertools import combinations

import numpy as np
import pandas as pd
from pandas import DataFrame

from gitrisk.config import AnalysisConfig
from gitrisk.filters import InvalidFilterError
from gitrisk.logging import get_logger

logger = get_logger("coupling")

COUPLING_COLUMNS = [
    "file_a",
    "file_b",
    "shared_commits",
    "total_commits_a",
    "total_commits_b",
    "coupling_score",
    "last_modified",
]


def empty_coupling():
    return DataFrame(
        {
            "file_a": pd.Series(dtype="object"),
            "file_b": pd.Series(dtype="object"),
            "shared_commits": pd.Series(dtype="int64"),
            "total_commits_a": pd.Series(dtype="int64"),
            "total_commits_b": pd.Series(dtype="int64"),
            "coupling_score": pd.Series(dtype="float64"),
            "last_modified": pd.Series(dtype="datetime64[ns, UTC]"),
        }
    )


def count_shared_commits(files_per_commit, max_files_per_commit):
    """Counts, for every unordered file pair, the commits in which both files changed.

    Pairs are only enumerated inside each commit, so the work is bounded by the sum of squared
    commit sizes rather than the square of the number of files. Commits touching more than
    ``max_files_per_commit`` files are left out entirely.

    Args:
        files_per_commit (Iterable[Iterable[str]]): the distinct files of each commit
        max_files_per_commit (int): size cap for a commit to take part

    Returns:
        tuple: a Counter keyed by ``(file_a, file_b)`` with ``file_a < file_b``, and the number of
        commits skipped by the cap
    """
    shared = Counter()
    skipped = 0
    for files in files_per_commit:
        files = sorted(set(files))
        if len(files) > max_files_per_commit:
            skipped += 1
            continue
        shared.update(combinations(files, 2))
    return shared, skipped


def analyze_coupling(
    history,
    config=None,
    min_shared_commits=None,
    min_coupling_score=None,
    limit=None,
    max_files_per_commit=None,
):
    """Finds pairs of files that change together.

    ``coupling_score = shared_commits / min(total_commits_a, total_commits_b)``, so it is 1.0 when
    every commit of the less active file also touched the other one.

    Args:
        history (DataFrame): joined, already filtered history; only its files can form pairs
        config (Optional[AnalysisConfig]): defaults for the arguments below
        min_shared_commits (Optional[int]): minimum co-occurrences, at least 1. Defaults to 2.
        min_coupling_score (Optional[float]): minimum score in [0, 1]. Defaults to 0.
        limit (Optional[int]): number of pairs returned, capped at ``config.max_coupling_pairs``
        max_files_per_commit (Optional[int]): commits touching more files are ignored for pairing
            (they still count toward each file's total commits)

    Returns:
        DataFrame: columns file_a, file_b, shared_commits, total_commits_a, total_commits_b,
        coupling_score and last_modified (latest commit touching either file), ordered by
        coupling_score desc, shared_commits desc, then file names.
    """
    config = config or AnalysisConfig()
    min_shared = config.min_shared_commits if min_shared_commits is None else min_shared_commits
    min_score = config.min_coupling_score if min_coupling_score is None else min_coupling_score
    max_files = config.max_files_per_commit if max_files_per_commit is None else max_files_per_commit
    cap = config.max_coupling_pairs if limit is None else min(limit, config.max_coupling_pairs)

    if min_shared < 1:
        raise InvalidFilterError(f"min_shared_commits must be >= 1, got {min_shared}")
    if not 0.0 <= min_score <= 1.0:
        raise InvalidFilterError(f"min_coupling_score must be in [0, 1], got {min_score}")
    if cap < 1:
        raise InvalidFilterError(f"limit must be >= 1, got {limit}")
    if max_files < 2:
        raise InvalidFilterError(f"max_files_per_commit must be >= 2, got {max_files}")

    if history.empty:
        return empty_coupling()

    files_per_commit = history.groupby("commit_id")["file_path"].unique()
    shared, skipped = count_shared_commits(files_per_commit.tolist(), max_files)
    if skipped:
        logger.debug(f"Skipped {skipped} commits touching more than {max_files} files during pair enumeration.")

    pairs = [(a, b, n) for (a, b), n in shared.items() if n >= min_shared]
    if not pairs:
        return empty_coupling()

    totals = history.groupby("file_path")["commit_id"].nunique()
    last_touched = history.groupby("file_path")["timestamp"].max()

    df = DataFrame(pairs, columns=["file_a", "file_b", "shared_commits"])
    df["total_commits_a"] = df["file_a"].map(totals).astype("int64")
    df["total_commits_b"] = df["file_b"].map(totals).astype("int64")

    denominator = np.minimum(df["total_commits_a"], df["total_commits_b"])
    df = df[denominator > 0].copy()
    df["coupling_score"] = df["shared_commits"] / np.minimum(df["total_commits_a"], df["total_commits_b"])
    df = df[df["coupling_score"] >= min_score].copy()

    latest = np.maximum(
        df["file_a"].map(last_touched).values,
        df["file_b"].map(last_touched).values,
    )
    df["last_modified"] = pd.to_datetime(latest, utc=True)
    df["shared_commits"] = df["shared_commits"].astype("int64")

    df = df.sort_values(
        ["coupling_score", "shared_commits", "file_a", "file_b"],
        ascending=[False, False, True, True],
        kind="mergesort",
    )
    logger.debug(f"Found {len(df)} coupled pairs above thresholds, returning at most {cap}.")
    return df.head(cap)[COUPLING_COLUMNS].reset_index(drop=True)


def coupled_files(coupling):
    """Set of files appearing in at least one coupling pair."""
    if coupling.empty:
        return set()
    return set(coupling["file_a"]) | set(coupling["file_b"])
