"""
.. module:: overview
   :platform: Unix, Windows
   :synopsis: Dashboard summary and monthly technical debt trend built from the other analyses


"""

import datetime

import pandas as pd

from gitrisk.config import AnalysisConfig, classify_risk
from gitrisk.coupling import coupled_files

SEVERE = ("high", "critical")


def debt_trend(commits, history, hotspot_files, coupling_files, months=12):
    """Monthly technical debt score.

    Commits are bucketed by calendar month (UTC). For each month the score is
    ``round(50 * hotspot_density + 50 * coupling_density)``, where each density is the share of the
    files touched that month that are hotspots, respectively members of a coupled pair. A month
    whose commits touched no (filtered) file scores 0. Months without commits are not filled in.

    Args:
        commits (DataFrame): filtered commits
        history (DataFrame): filtered, joined history
        hotspot_files (set): files flagged as hotspots
        coupling_files (set): files in at least one reported coupling pair
        months (int): only the most recent ``months`` buckets are kept

    Returns:
        list[dict]: ``{"month": "Apr 2025", "score": int}`` in chronological order
    """
    if commits.empty:
        return []

    commit_months = commits["timestamp"].dt.year * 100 + commits["timestamp"].dt.month
    buckets = sorted(commit_months.unique().tolist())[-months:]

    files_by_month = {}
    if not history.empty:
        history_months = history["timestamp"].dt.year * 100 + history["timestamp"].dt.month
        files_by_month = history.groupby(history_months)["file_path"].agg(set).to_dict()

    trend = []
    for key in buckets:
        files = files_by_month.get(key, set())
        score = 0
        if files:
            hotspot_density = len(files & hotspot_files) / len(files)
            coupling_density = len(files & coupling_files) / len(files)
            score = int(round(50 * hotspot_density + 50 * coupling_density))
        label = datetime.date(key // 100, key % 100, 1).strftime("%b %Y")
        trend.append({"month": label, "score": score})
    return trend


def compose_overview(commits, history, hotspots, ownership, coupling, config=None, analyzed_at=None):
    """Combines raw totals with the hotspot, ownership and coupling results.

    Args:
        commits (DataFrame): filtered commits
        history (DataFrame): filtered, joined history
        hotspots (DataFrame): output of :func:`gitrisk.hotspots.detect_hotspots`
        ownership (DataFrame): output of :func:`gitrisk.ownership.analyze_ownership`
        coupling (DataFrame): output of :func:`gitrisk.coupling.analyze_coupling`
        config (Optional[AnalysisConfig]): thresholds
        analyzed_at (Optional[datetime]): analysis time reported in ``analysisStatus``; now if None

    Returns:
        dict: totals (``totalFiles``, ``totalCommits``, ``contributors``, ``totalLOC``,
        ``totalHotspots``, ``highCouplingRisks``, ``knowledgeRisks``), ``riskSnapshots``,
        ``technicalDebtTrend`` and ``analysisStatus``
    """
    config = config or AnalysisConfig()

    total_files = int(history["file_path"].nunique()) if not history.empty else 0
    total_loc = 0
    if not history.empty:
        total_loc = int(history["lines_added"].fillna(0).sum() - history["lines_deleted"].fillna(0).sum())

    flagged = hotspots[hotspots["is_hotspot"]] if not hotspots.empty else hotspots
    hotspot_files = set(flagged["file_path"]) if not flagged.empty else set()

    high_coupling = 0
    if not coupling.empty:
        levels = coupling["coupling_score"].map(lambda s: classify_risk(s, config.coupling_risk))
        high_coupling = int(levels.isin(SEVERE).sum())

    knowledge_risks = int(ownership["riskLevel"].isin(SEVERE).sum()) if not ownership.empty else 0

    snapshots = [
        {"component": r.file_path, "level": r.risk_level, "changes": int(r.change_count)}
        for r in flagged.head(config.top_risk_snapshots).itertuples(index=False)
    ]

    if analyzed_at is None:
        analyzed_at = pd.Timestamp.now(tz="UTC")
    else:
        analyzed_at = pd.Timestamp(analyzed_at)
        analyzed_at = analyzed_at.tz_localize("UTC") if analyzed_at.tzinfo is None else analyzed_at.tz_convert("UTC")

    return {
        "totalFiles": total_files,
        "totalCommits": int(len(commits)),
        "contributors": int(commits["author"].nunique()) if not commits.empty else 0,
        "totalLOC": total_loc,
        "totalHotspots": len(hotspot_files),
        "highCouplingRisks": high_coupling,
        "knowledgeRisks": knowledge_risks,
        "riskSnapshots": snapshots,
        "technicalDebtTrend": debt_trend(
            commits,
            history,
            hotspot_files,
            coupled_files(coupling),
            months=config.trend_months,
        ),
        "analysisStatus": {
            "status": "Completed",
            "lastAnalyzed": analyzed_at.isoformat(),
            "filesScanned": total_files,
        },
    }
