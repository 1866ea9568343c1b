"""
.. module:: ownership
   :platform: Unix, Windows
   :synopsis: Per-file knowledge ownership, concentration risk and bus factor estimates


"""

import pandas as pd
from pandas import DataFrame

from gitrisk.config import RISK_LEVELS, AnalysisConfig, classify_risk
from gitrisk.filters import filter_risk_level

OWNERSHIP_COLUMNS = [
    "filePath",
    "primaryOwner",
    "ownershipPercentage",
    "totalContributors",
    "authors",
    "riskLevel",
    "lastModified",
    "busFactor",
    "totalLines",
    "basis",
]


def empty_ownership():
    return DataFrame(
        {
            "filePath": pd.Series(dtype="object"),
            "primaryOwner": pd.Series(dtype="object"),
            "ownershipPercentage": pd.Series(dtype="float64"),
            "totalContributors": pd.Series(dtype="int64"),
            "authors": pd.Series(dtype="object"),
            "riskLevel": pd.Series(dtype="object"),
            "lastModified": pd.Series(dtype="datetime64[ns, UTC]"),
            "busFactor": pd.Series(dtype="int64"),
            "totalLines": pd.Series(dtype="int64"),
            "basis": pd.Series(dtype="object"),
        }
    )


def estimate_bus_factor(contributions, config=None):
    """Estimates how many contributors must stay to keep most of the knowledge of a file.

    1. If the largest share is above ``config.sole_owner_percentage`` and there are fewer than
       ``config.sole_owner_max_contributors`` contributors, the bus factor is 1.
    2. Otherwise it is the smallest number of top contributors whose cumulative share reaches
       ``config.bus_factor_coverage`` percent.
    3. No contributors (or nothing contributed) gives 0.

    Args:
        contributions (Iterable[float]): one contribution amount per contributor, any order
        config (Optional[AnalysisConfig]): thresholds

    Returns:
        int: bus factor between 0 and the number of contributors
    """
    config = config or AnalysisConfig()
    values = sorted((c for c in contributions if c > 0), reverse=True)
    total = sum(values)
    if not values or total <= 0:
        return 0

    if values[0] * 100.0 / total > config.sole_owner_percentage and len(values) < config.sole_owner_max_contributors:
        return 1

    # compare raw amounts so equal shares do not fall short through float error
    cumulative = 0
    count = 0
    for value in values:
        cumulative += value
        count += 1
        if cumulative * 100 >= config.bus_factor_coverage * total:
            break
    return min(count, len(values))


def _author_contributions(history):
    added = history["lines_added"].fillna(0)
    deleted = history["lines_deleted"].fillna(0)
    df = (
        history.assign(_churn=added + deleted)
        .groupby(["file_path", "author"])
        .agg(
            commits=("commit_id", "nunique"),
            lines=("_churn", "sum"),
            last_modified=("timestamp", "max"),
        )
        .reset_index()
    )

    # files with no size data fall back to counting commits
    file_lines = df.groupby("file_path")["lines"].transform("sum")
    df["basis"] = "commits"
    df.loc[file_lines > 0, "basis"] = "lines"
    df["contribution"] = df["commits"].where(file_lines <= 0, df["lines"]).astype("int64")
    df["commits"] = df["commits"].astype("int64")
    return df


def analyze_ownership(history, config=None):
    """Computes ownership concentration for every file in ``history``.

    Contribution is measured in lines changed (added plus deleted). For a file without any line
    data it is the number of distinct commits instead.

    Args:
        history (DataFrame): joined, already filtered history
        config (Optional[AnalysisConfig]): thresholds

    Returns:
        DataFrame: one row per file with columns
            - filePath (str)
            - primaryOwner (str): highest share; ties go to the most recent contributor, then by name
            - ownershipPercentage (float): the primary owner's share, 0-100
            - totalContributors (int)
            - authors (list[dict]): ``name``, ``contribution``, ``percentage``, ``commits``,
              ``lastModified`` per author, largest share first
            - riskLevel (str): ownershipPercentage classified with ``config.ownership_risk``
            - lastModified (Timestamp)
            - busFactor (int): see :func:`estimate_bus_factor`
            - totalLines (int): sum of contributions
            - basis (str): ``"lines"`` or ``"commits"``

        Ordered by ownershipPercentage desc, then filePath.
    """
    config = config or AnalysisConfig()
    if history.empty:
        return empty_ownership()

    contributions = _author_contributions(history)

    rows = []
    for file_path, grp in contributions.groupby("file_path", sort=True):
        grp = grp.sort_values(
            ["contribution", "last_modified", "author"],
            ascending=[False, False, True],
            kind="mergesort",
        )
        total = int(grp["contribution"].sum())
        if total <= 0:
            continue

        authors = [
            {
                "name": r.author,
                "contribution": int(r.contribution),
                "percentage": r.contribution * 100.0 / total,
                "commits": int(r.commits),
                "lastModified": r.last_modified,
            }
            for r in grp.itertuples(index=False)
        ]
        primary = authors[0]
        rows.append(
            {
                "filePath": file_path,
                "primaryOwner": primary["name"],
                "ownershipPercentage": primary["percentage"],
                "totalContributors": len(authors),
                "authors": authors,
                "riskLevel": classify_risk(primary["percentage"], config.ownership_risk),
                "lastModified": grp["last_modified"].max(),
                "busFactor": estimate_bus_factor(grp["contribution"].tolist(), config=config),
                "totalLines": total,
                "basis": grp["basis"].iloc[0],
            }
        )

    if not rows:
        return empty_ownership()

    df = DataFrame(rows, columns=OWNERSHIP_COLUMNS)
    df = df.sort_values(["ownershipPercentage", "filePath"], ascending=[False, True], kind="mergesort")
    return df.reset_index(drop=True)


def select_ownership(ownership, risk_level=None):
    return filter_risk_level(ownership, risk_level, "riskLevel")


def bus_factor_summary(ownership):
    """Aggregate view over a file ownership frame.

    Returns:
        dict: ``total_files``, one ``<level>_risk_files`` count per risk level, ``distribution``
        (bus factor -> number of files) and ``average_bus_factor``
    """
    summary = {"total_files": int(len(ownership))}
    for level in reversed(RISK_LEVELS):
        summary[f"{level}_risk_files"] = int((ownership["riskLevel"] == level).sum()) if len(ownership) else 0

    if ownership.empty:
        summary["distribution"] = {}
        summary["average_bus_factor"] = 0.0
        return summary

    counts = ownership["busFactor"].value_counts().sort_index()
    summary["distribution"] = {int(k): int(v) for k, v in counts.items()}
    summary["average_bus_factor"] = float(ownership["busFactor"].mean())
    return summary
