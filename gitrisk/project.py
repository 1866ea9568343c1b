"""
.. module:: project
   :platform: Unix, Windows
   :synopsis: Risk analytics over the history of a single project


"""

import functools

from gitrisk.cache import multicache
from gitrisk.config import AnalysisConfig
from gitrisk.coupling import analyze_coupling
from gitrisk.filters import AnalysisFilter, InvalidFilterError
from gitrisk.hotspots import author_hotspots, detect_hotspots, select_hotspots
from gitrisk.logging import logger
from gitrisk.overview import compose_overview
from gitrisk.ownership import analyze_ownership, bus_factor_summary, select_ownership
from gitrisk.store import HistoryStoreError, join_history, list_file_types, validate_changes, validate_commits

FILTER_KEYS = ["start_date", "end_date", "path_prefix", "file_types"]


def _log_failures(func):
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except (HistoryStoreError, InvalidFilterError) as e:
            logger.error(f"{func.__name__} failed for project [{self.project_name}]: {e}")
            raise

    return wrapper


class ProjectHistory:
    """Analyses the commit/change history of one project held in a history store.

    Every analysis method accepts the same scoping arguments: ``start_date`` and ``end_date``
    (inclusive), ``path_prefix`` (directory aware) and ``file_types`` (extensions). Results are
    recomputed from the store on every call unless a cache backend is given.

    Args:
        store (HistoryStore): where commits and changes are read from
        project_id: the project's id in the store
        config (Optional[AnalysisConfig]): thresholds and caps. Defaults to AnalysisConfig().
        cache_backend (Optional[object]): EphemeralCache or DiskCache instance from gitrisk.cache
        name (Optional[str]): display name used in logs and cache keys. Defaults to ``str(project_id)``.

    Examples:
        >>> project = ProjectHistory(InMemoryHistoryStore({1: (commits, changes)}), 1)
        >>> project.hotspots(start_date="2024-01-01", only_hotspots=True)
    """

    def __init__(self, store, project_id, config=None, cache_backend=None, name=None):
        self.store = store
        self.project_id = project_id
        self.config = config or AnalysisConfig()
        self.cache_backend = cache_backend
        self._name = name

        logger.info(f"ProjectHistory [{self.project_name}] instantiated with {self.config!r}")

    @property
    def project_name(self):
        return self._name if self._name is not None else str(self.project_id)

    def __str__(self):
        return f"{self.project_name}"

    def __repr__(self):
        return f"ProjectHistory(project_id={self.project_id!r}, name={self.project_name!r})"

    @_log_failures
    def commits(self):
        """All commits of the project, newest first."""
        return validate_commits(self.store.get_commits_by_project_id(self.project_id))

    @_log_failures
    def changes(self):
        """All file changes of the project, ordered by their commit's timestamp, newest first."""
        commits = self.commits()
        return validate_changes(self.store.get_changes_by_project_id(self.project_id), commits=commits)

    def _scoped(self, start_date=None, end_date=None, path_prefix=None, file_types=None):
        analysis_filter = AnalysisFilter(
            start_date=start_date,
            end_date=end_date,
            path_prefix=path_prefix,
            file_types=file_types,
        )
        commits = self.commits()
        changes = validate_changes(self.store.get_changes_by_project_id(self.project_id), commits=commits)
        history = analysis_filter.apply(join_history(commits, changes))
        commits = analysis_filter.apply_commits(commits, history=history)
        logger.debug(f"Scoped [{self.project_name}] with {analysis_filter!r}: {len(commits)} commits, {len(history)} changes")
        return commits, history

    @multicache(key_prefix="history", key_list=FILTER_KEYS)
    @_log_failures
    def history(self, start_date=None, end_date=None, path_prefix=None, file_types=None):
        """
        Returns the changes joined with their commits, scoped by the given filters.

        Returns:
            DataFrame: columns change_id, commit_id, file_path, lines_added, lines_deleted, hash,
            author and timestamp, newest first
        """
        return self._scoped(start_date=start_date, end_date=end_date, path_prefix=path_prefix, file_types=file_types)[1]

    @multicache(
        key_prefix="hotspots",
        key_list=FILTER_KEYS + ["metric", "min_complexity", "only_hotspots", "min_changes", "risk_level"],
    )
    @_log_failures
    def hotspots(
        self,
        start_date=None,
        end_date=None,
        path_prefix=None,
        file_types=None,
        metric="change_count",
        min_complexity=None,
        only_hotspots=False,
        min_changes=None,
        risk_level=None,
    ):
        """
        Ranks files by churn and flags the ones changing more often than the hotspot threshold.

        Args:
            start_date, end_date, path_prefix, file_types: scoping, see the class docstring
            metric (str): ``"change_count"`` or ``"complexity"``, the signal compared with the threshold
            min_complexity (Optional[float]): threshold for that signal, ``config.hotspot_threshold`` if None
            only_hotspots (bool): drop files that are not flagged
            min_changes (Optional[int]): drop files with fewer distinct commits
            risk_level (Optional[str]): ``"all"`` or one risk level

        Returns:
            DataFrame: see :func:`gitrisk.hotspots.detect_hotspots`
        """
        logger.info(
            f"Detecting hotspots for [{self.project_name}]. Start: {start_date}, End: {end_date}, "
            f"Prefix: {path_prefix}, Types: {file_types}, Metric: {metric}, Threshold: {min_complexity}"
        )
        _, history = self._scoped(start_date=start_date, end_date=end_date, path_prefix=path_prefix, file_types=file_types)
        ranked = detect_hotspots(history, config=self.config, metric=metric, min_complexity=min_complexity)
        out = select_hotspots(ranked, only_hotspots=only_hotspots, min_changes=min_changes, risk_level=risk_level)
        logger.info(f"Found {int(ranked['is_hotspot'].sum())} hotspots among {len(ranked)} files, returning {len(out)}.")
        return out

    @multicache(key_prefix="file_ownership", key_list=FILTER_KEYS + ["risk_level"])
    @_log_failures
    def file_ownership(self, start_date=None, end_date=None, path_prefix=None, file_types=None, risk_level=None):
        """
        Knowledge ownership per file: primary owner, contributor shares, risk level and bus factor.

        Returns:
            DataFrame: see :func:`gitrisk.ownership.analyze_ownership`
        """
        logger.info(
            f"Analyzing file ownership for [{self.project_name}]. Start: {start_date}, End: {end_date}, "
            f"Prefix: {path_prefix}, Types: {file_types}, Risk level: {risk_level}"
        )
        _, history = self._scoped(start_date=start_date, end_date=end_date, path_prefix=path_prefix, file_types=file_types)
        out = select_ownership(analyze_ownership(history, config=self.config), risk_level=risk_level)
        logger.info(f"Ownership computed for {len(out)} files.")
        return out

    @multicache(key_prefix="bus_factor", key_list=FILTER_KEYS)
    @_log_failures
    def bus_factor(self, start_date=None, end_date=None, path_prefix=None, file_types=None):
        """
        Summarizes knowledge concentration over all files in scope.

        Returns:
            dict: see :func:`gitrisk.ownership.bus_factor_summary`
        """
        ownership = self.file_ownership(
            start_date=start_date,
            end_date=end_date,
            path_prefix=path_prefix,
            file_types=file_types,
        )
        return bus_factor_summary(ownership)

    @multicache(
        key_prefix="temporal_coupling",
        key_list=FILTER_KEYS + ["min_shared_commits", "min_coupling_score", "limit"],
    )
    @_log_failures
    def temporal_coupling(
        self,
        start_date=None,
        end_date=None,
        path_prefix=None,
        file_types=None,
        min_shared_commits=None,
        min_coupling_score=None,
        limit=None,
    ):
        """
        Pairs of files that tend to change in the same commits.

        Args:
            start_date, end_date, path_prefix, file_types: scoping, see the class docstring
            min_shared_commits (Optional[int]): defaults to ``config.min_shared_commits``
            min_coupling_score (Optional[float]): defaults to ``config.min_coupling_score``
            limit (Optional[int]): number of pairs, capped at ``config.max_coupling_pairs``

        Returns:
            DataFrame: see :func:`gitrisk.coupling.analyze_coupling`
        """
        logger.info(
            f"Analyzing temporal coupling for [{self.project_name}]. Start: {start_date}, End: {end_date}, "
            f"Prefix: {path_prefix}, Types: {file_types}, Min shared: {min_shared_commits}, "
            f"Min score: {min_coupling_score}, Limit: {limit}"
        )
        _, history = self._scoped(start_date=start_date, end_date=end_date, path_prefix=path_prefix, file_types=file_types)
        out = analyze_coupling(
            history,
            config=self.config,
            min_shared_commits=min_shared_commits,
            min_coupling_score=min_coupling_score,
            limit=limit,
        )
        logger.info(f"Found {len(out)} coupled file pairs.")
        return out

    @multicache(key_prefix="author_hotspots", key_list=FILTER_KEYS)
    @_log_failures
    def author_hotspots(self, start_date=None, end_date=None, path_prefix=None, file_types=None):
        """
        Activity concentration per author.

        Returns:
            DataFrame: see :func:`gitrisk.hotspots.author_hotspots`
        """
        _, history = self._scoped(start_date=start_date, end_date=end_date, path_prefix=path_prefix, file_types=file_types)
        return author_hotspots(history)

    @multicache(key_prefix="overview", key_list=FILTER_KEYS + ["analyzed_at"])
    @_log_failures
    def overview(self, start_date=None, end_date=None, path_prefix=None, file_types=None, analyzed_at=None):
        """
        Dashboard summary: totals, risk counts, top risky files and the monthly debt trend.

        Args:
            start_date, end_date, path_prefix, file_types: scoping, see the class docstring
            analyzed_at (Optional[datetime]): timestamp reported as ``lastAnalyzed``, now if None

        Returns:
            dict: see :func:`gitrisk.overview.compose_overview`
        """
        logger.info(
            f"Composing overview for [{self.project_name}]. Start: {start_date}, End: {end_date}, "
            f"Prefix: {path_prefix}, Types: {file_types}"
        )
        commits, history = self._scoped(
            start_date=start_date,
            end_date=end_date,
            path_prefix=path_prefix,
            file_types=file_types,
        )
        result = compose_overview(
            commits,
            history,
            detect_hotspots(history, config=self.config),
            analyze_ownership(history, config=self.config),
            analyze_coupling(history, config=self.config),
            config=self.config,
            analyzed_at=analyzed_at,
        )
        logger.info(
            f"Overview for [{self.project_name}]: {result['totalCommits']} commits, {result['totalFiles']} files, "
            f"{result['totalHotspots']} hotspots."
        )
        return result

    @_log_failures
    def file_types(self):
        """Sorted distinct file extensions in the project's history."""
        return list_file_types(self.changes())

    def invalidate_cache(self):
        """Drops every cached result of this project.

        Call after new commits were ingested into the store.

        Returns:
            int: number of entries removed, 0 without a cache backend
        """
        if self.cache_backend is None:
            return 0
        removed = self.cache_backend.invalidate_cache(pattern=f"*||{self.project_name}||*")
        logger.info(f"Invalidated {removed} cached results for [{self.project_name}].")
        return removed
