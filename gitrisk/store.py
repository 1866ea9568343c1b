"""
.. module:: store
   :platform: Unix, Windows
   :synopsis: Read-only access to a project's commit/change log, with schema validation at the boundary


"""

import posixpath
import re

import git
import numpy as np
import pandas as pd
from git import InvalidGitRepositoryError, NoSuchPathError, Repo
from pandas import DataFrame

from gitrisk.logging import get_logger

logger = get_logger("store")

COMMIT_COLUMNS = ["id", "hash", "author", "timestamp", "message"]
CHANGE_COLUMNS = ["id", "commit_id", "file_path", "lines_added", "lines_deleted"]
HISTORY_COLUMNS = ["change_id", "commit_id", "file_path", "lines_added", "lines_deleted", "hash", "author", "timestamp"]

_RENAME_BRACES = re.compile(r"\{([^{}]*) => ([^{}]*)\}")


class HistoryStoreError(Exception):
    """Raised when the history store cannot be read."""

    pass


class MalformedHistoryError(HistoryStoreError, ValueError):
    """Raised when commit or change rows do not match the expected schema."""

    pass


def empty_commits():
    return DataFrame(
        {
            "id": pd.Series(dtype="int64"),
            "hash": pd.Series(dtype="object"),
            "author": pd.Series(dtype="object"),
            "timestamp": pd.Series(dtype="datetime64[ns, UTC]"),
            "message": pd.Series(dtype="object"),
        }
    )


def empty_changes():
    return DataFrame(
        {
            "id": pd.Series(dtype="int64"),
            "commit_id": pd.Series(dtype="int64"),
            "file_path": pd.Series(dtype="object"),
            "lines_added": pd.Series(dtype="float64"),
            "lines_deleted": pd.Series(dtype="float64"),
        }
    )


def empty_history():
    return DataFrame(
        {
            "change_id": pd.Series(dtype="int64"),
            "commit_id": pd.Series(dtype="int64"),
            "file_path": pd.Series(dtype="object"),
            "lines_added": pd.Series(dtype="float64"),
            "lines_deleted": pd.Series(dtype="float64"),
            "hash": pd.Series(dtype="object"),
            "author": pd.Series(dtype="object"),
            "timestamp": pd.Series(dtype="datetime64[ns, UTC]"),
        }
    )


def normalize_path(path):
    """Returns ``path`` forward-slash separated, without a leading ``./`` or ``/``."""
    path = str(path).replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def _to_frame(rows):
    if rows is None:
        return DataFrame()
    if isinstance(rows, DataFrame):
        return rows.copy()
    rows = list(rows)
    if not rows:
        return DataFrame()
    try:
        return DataFrame.from_records(rows)
    except (TypeError, ValueError) as e:
        raise MalformedHistoryError(f"Rows cannot be read as records: {e}") from e


def _coerce_ids(series, label):
    if series.isna().any():
        raise MalformedHistoryError(f"{label} contains null values")
    try:
        values = pd.to_numeric(series, errors="raise")
    except (TypeError, ValueError) as e:
        raise MalformedHistoryError(f"{label} must be integer: {e}") from e
    if not np.all(np.mod(values, 1) == 0):
        raise MalformedHistoryError(f"{label} must be integer")
    return values.astype("int64")


def _coerce_lines(series, label):
    try:
        values = pd.to_numeric(series, errors="raise").astype("float64")
    except (TypeError, ValueError) as e:
        raise MalformedHistoryError(f"{label} must be numeric: {e}") from e
    if (values < 0).any():
        raise MalformedHistoryError(f"{label} cannot be negative")
    return values


def _coerce_timestamps(series):
    try:
        if pd.api.types.is_numeric_dtype(series):
            # numeric timestamps are epoch seconds
            values = pd.to_datetime(series, unit="s", utc=True)
        else:
            values = pd.to_datetime(series, utc=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedHistoryError(f"commit timestamp cannot be parsed: {e}") from e
    if values.isna().any():
        raise MalformedHistoryError("commit timestamp contains null values")
    return values.astype("datetime64[ns, UTC]")


def validate_commits(rows):
    """Deserializes commit rows into the canonical commits frame.

    Args:
        rows (Union[DataFrame, Iterable[Mapping]]): rows with ``id``, ``hash``, ``author``, ``timestamp``
            and optionally ``message``. Extra columns are dropped.

    Returns:
        DataFrame: columns ``id``, ``hash``, ``author``, ``timestamp`` (UTC), ``message``, ordered by
        timestamp descending.

    Raises:
        MalformedHistoryError: on missing columns, null or duplicate ids, empty authors or bad timestamps.
    """
    df = _to_frame(rows)
    if df.empty and len(df.columns) == 0:
        return empty_commits()

    if "message" not in df.columns:
        df["message"] = ""
    missing = [c for c in COMMIT_COLUMNS if c not in df.columns]
    if missing:
        raise MalformedHistoryError(f"commit rows are missing columns: {missing}")

    df = df[COMMIT_COLUMNS].copy()
    if df.empty:
        return empty_commits()

    df["id"] = _coerce_ids(df["id"], "commit id")
    if df["id"].duplicated().any():
        dupes = sorted(df.loc[df["id"].duplicated(), "id"].unique().tolist())
        raise MalformedHistoryError(f"duplicate commit ids: {dupes}")

    if df["hash"].isna().any():
        raise MalformedHistoryError("commit hash contains null values")
    df["hash"] = df["hash"].astype(str)

    if df["author"].isna().any():
        raise MalformedHistoryError("commit author contains null values")
    df["author"] = df["author"].astype(str).str.strip()
    if (df["author"] == "").any():
        raise MalformedHistoryError("commit author cannot be empty")

    df["timestamp"] = _coerce_timestamps(df["timestamp"])
    df["message"] = df["message"].fillna("").astype(str)

    df = df.sort_values(["timestamp", "id"], ascending=[False, False], kind="mergesort")
    return df.reset_index(drop=True)


def validate_changes(rows, commits=None):
    """Deserializes change rows into the canonical changes frame.

    ``commit_id`` and ``file_path`` are required. A missing ``id`` column is numbered 1..n and
    missing line counts are recorded as absent (NaN) rather than zero.

    Args:
        rows (Union[DataFrame, Iterable[Mapping]]): the change rows
        commits (Optional[DataFrame]): validated commits; when given, every change must reference one
            of them and the result is ordered by commit timestamp descending.

    Returns:
        DataFrame: columns ``id``, ``commit_id``, ``file_path``, ``lines_added``, ``lines_deleted``

    Raises:
        MalformedHistoryError: on missing columns, bad paths, negative line counts or unknown commits.
    """
    df = _to_frame(rows)
    if df.empty and len(df.columns) == 0:
        return empty_changes()

    missing = [c for c in ("commit_id", "file_path") if c not in df.columns]
    if missing:
        raise MalformedHistoryError(f"change rows are missing columns: {missing}")
    if "id" not in df.columns:
        df["id"] = np.arange(1, len(df) + 1)
    for col in ("lines_added", "lines_deleted"):
        if col not in df.columns:
            df[col] = np.nan

    df = df[CHANGE_COLUMNS].copy()
    if df.empty:
        return empty_changes()

    df["id"] = _coerce_ids(df["id"], "change id")
    df["commit_id"] = _coerce_ids(df["commit_id"], "change commit_id")

    if df["file_path"].isna().any():
        raise MalformedHistoryError("change file_path contains null values")
    df["file_path"] = df["file_path"].map(normalize_path)
    if (df["file_path"] == "").any():
        raise MalformedHistoryError("change file_path cannot be empty")
    if df["file_path"].str.contains("\x00", regex=False).any():
        raise MalformedHistoryError("change file_path contains a null character")

    df["lines_added"] = _coerce_lines(df["lines_added"], "lines_added")
    df["lines_deleted"] = _coerce_lines(df["lines_deleted"], "lines_deleted")

    if commits is not None:
        known = set(commits["id"].tolist())
        orphans = sorted(set(df["commit_id"].tolist()) - known)
        if orphans:
            raise MalformedHistoryError(f"changes reference unknown commits: {orphans[:10]}")
        order = pd.Series(commits["timestamp"].values, index=commits["id"].values)
        df["_ts"] = df["commit_id"].map(order)
        df = df.sort_values(["_ts", "commit_id", "id"], ascending=[False, False, True], kind="mergesort")
        df = df.drop(columns=["_ts"])

    return df.reset_index(drop=True)


def join_history(commits, changes):
    """Joins changes with their commits into one frame, newest first.

    Returns:
        DataFrame: columns ``change_id``, ``commit_id``, ``file_path``, ``lines_added``,
        ``lines_deleted``, ``hash``, ``author``, ``timestamp``
    """
    if changes.empty or commits.empty:
        return empty_history()

    df = changes.rename(columns={"id": "change_id"}).merge(
        commits[["id", "hash", "author", "timestamp"]].rename(columns={"id": "commit_id"}),
        on="commit_id",
        how="inner",
        validate="many_to_one",
    )
    df = df.sort_values(["timestamp", "commit_id", "change_id"], ascending=[False, False, True], kind="mergesort")
    return df[HISTORY_COLUMNS].reset_index(drop=True)


def file_extension(path):
    """Lower-cased extension of the file name without the dot, or ``""``."""
    ext = posixpath.splitext(posixpath.basename(path))[1]
    return ext[1:].lower()


def list_file_types(changes):
    """Sorted distinct file extensions present in a changes (or history) frame.

    Extensions longer than 10 characters are treated as noise and skipped.
    """
    if changes.empty:
        return []
    exts = {file_extension(p) for p in changes["file_path"].unique()}
    return sorted(e for e in exts if 0 < len(e) <= 10)


class HistoryStore:
    """Read interface over the commit/change log of many projects.

    Implementations must return frames that have gone through :func:`validate_commits` and
    :func:`validate_changes`. An unknown project yields empty frames; failures to reach the
    underlying source raise :class:`HistoryStoreError`.
    """

    def get_commits_by_project_id(self, project_id):
        """Commits of the project ordered by timestamp descending."""
        raise NotImplementedError

    def get_changes_by_project_id(self, project_id):
        """Changes of the project ordered by owning commit timestamp descending."""
        raise NotImplementedError


class InMemoryHistoryStore(HistoryStore):
    """A history store backed by rows held in memory.

    Args:
        projects (Optional[dict]): mapping of project id to a ``(commits, changes)`` tuple

    Examples:
        >>> store = InMemoryHistoryStore()
        >>> store.add_project(1, commits=[...], changes=[...])
    """

    def __init__(self, projects=None):
        self._projects = {}
        for project_id, (commits, changes) in (projects or {}).items():
            self.add_project(project_id, commits, changes)

    def add_project(self, project_id, commits, changes=None):
        """Validates and registers (or replaces) the log of one project."""
        commits_df = validate_commits(commits)
        changes_df = validate_changes(changes, commits=commits_df)
        self._projects[project_id] = (commits_df, changes_df)
        logger.debug(f"Registered project {project_id}: {len(commits_df)} commits, {len(changes_df)} changes")

    def get_commits_by_project_id(self, project_id):
        if project_id not in self._projects:
            return empty_commits()
        return self._projects[project_id][0].copy()

    def get_changes_by_project_id(self, project_id):
        if project_id not in self._projects:
            return empty_changes()
        return self._projects[project_id][1].copy()


def _rename_target(path):
    # numstat reports renames as "old => new" or "dir/{old => new}/file"
    if " => " not in path:
        return path
    if "{" in path:
        return re.sub("/{2,}", "/", _RENAME_BRACES.sub(r"\2", path)).strip("/")
    return path.split(" => ", 1)[1]


class GitRepositoryStore(HistoryStore):
    """A history store reading existing local git working copies with GitPython.

    Nothing is cloned or fetched: each project id maps to a directory that already holds a
    repository. Commits are numbered 1..N from the oldest, authors are commit author names and
    line counts come from the per-commit numstat.

    Args:
        repositories (dict): mapping of project id to a local repository path
        branch (Optional[str]): revision to walk. Defaults to HEAD.
    """

    def __init__(self, repositories, branch=None):
        self.repositories = {k: str(v) for k, v in repositories.items()}
        self.branch = branch
        self._snapshots = {}

    def _open(self, project_id):
        path = self.repositories[project_id]
        try:
            return Repo(path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            logger.error(f"Cannot open repository for project {project_id} at {path}: {e}")
            raise HistoryStoreError(f"Cannot open repository for project {project_id} at {path}") from e

    def _read(self, project_id):
        repo = self._open(project_id)
        if not repo.head.is_valid():
            logger.info(f"Repository for project {project_id} has no commits yet.")
            return empty_commits(), empty_changes()

        try:
            head = repo.commit(self.branch or "HEAD").hexsha
        except (git.exc.BadName, ValueError) as e:
            raise HistoryStoreError(f"Unknown revision {self.branch!r} for project {project_id}") from e

        key = (project_id, head)
        if key in self._snapshots:
            logger.debug(f"Reusing history snapshot for project {project_id} at {head}")
            return self._snapshots[key]

        commit_rows = []
        change_rows = []
        try:
            for idx, c in enumerate(repo.iter_commits(head, reverse=True), start=1):
                commit_rows.append(
                    {
                        "id": idx,
                        "hash": c.hexsha,
                        "author": c.author.name or c.author.email,
                        "timestamp": pd.to_datetime(c.committed_date, unit="s", utc=True),
                        "message": c.message,
                    }
                )
                for path, stats in c.stats.files.items():
                    change_rows.append(
                        {
                            "id": len(change_rows) + 1,
                            "commit_id": idx,
                            "file_path": _rename_target(path),
                            "lines_added": stats["insertions"],
                            "lines_deleted": stats["deletions"],
                        }
                    )
        except git.exc.GitCommandError as e:
            logger.error(f"Git command failed reading history of project {project_id}: {e}")
            raise HistoryStoreError(f"Git command failed reading history of project {project_id}") from e

        commits = validate_commits(commit_rows)
        changes = validate_changes(change_rows, commits=commits)
        # keep only the latest snapshot per project
        self._snapshots = {k: v for k, v in self._snapshots.items() if k[0] != project_id}
        self._snapshots[key] = (commits, changes)
        logger.info(f"Read {len(commits)} commits and {len(changes)} changes for project {project_id}")
        return commits, changes

    def get_commits_by_project_id(self, project_id):
        if project_id not in self.repositories:
            return empty_commits()
        return self._read(project_id)[0].copy()

    def get_changes_by_project_id(self, project_id):
        if project_id not in self.repositories:
            return empty_changes()
        return self._read(project_id)[1].copy()
