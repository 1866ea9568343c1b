"""
.. module:: filters
   :platform: Unix, Windows
   :synopsis: Caller-supplied filter parameters, validated once and applied the same way by every analyzer


"""

import datetime
import math
import numbers
import re

import pandas as pd

from gitrisk.config import RISK_LEVELS
from gitrisk.store import file_extension, normalize_path

METRICS = ("change_count", "complexity")
RISK_LEVEL_FILTERS = ("all",) + RISK_LEVELS

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EARLIEST = pd.Timestamp.min.tz_localize("UTC")
_LATEST = pd.Timestamp.max.tz_localize("UTC")


class InvalidFilterError(ValueError):
    """Raised when a filter value, or a combination of them, cannot be honored."""

    pass


def _parse_bound(value, name, end=False):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    date_only = isinstance(value, datetime.date) and not isinstance(value, datetime.datetime)
    if isinstance(value, str):
        value = value.strip()
        date_only = bool(_DATE_ONLY.match(value))

    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise InvalidFilterError(f"{name} is not a valid date: {value!r}") from e
    if ts is pd.NaT:
        raise InvalidFilterError(f"{name} is not a valid date: {value!r}")

    ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    if end and date_only:
        # a bare end date includes the whole day
        try:
            ts = ts + pd.Timedelta(days=1) - pd.Timedelta(1, unit="ns")
        except (OverflowError, ValueError):
            ts = _LATEST
    # bounds past what nanosecond timestamps hold, such as 9999-12-31, are clamped
    return min(max(ts, _EARLIEST), _LATEST)


def parse_file_types(file_types):
    """Normalizes a file-type filter to a frozenset of lower-case extensions without dots.

    Accepts None, a comma separated string (``"js, .PY"``) or any iterable of strings.
    """
    if file_types is None:
        return frozenset()
    if isinstance(file_types, str):
        file_types = file_types.split(",")
    out = set()
    for ft in file_types:
        if not isinstance(ft, str):
            raise InvalidFilterError(f"file type must be a string, got {ft!r}")
        ft = ft.strip().lstrip(".").lower()
        if ft:
            out.add(ft)
    return frozenset(out)


def validate_risk_level(risk_level):
    """Returns the normalized risk level filter (``"all"`` when None)."""
    if risk_level is None:
        return "all"
    level = str(risk_level).strip().lower()
    if level not in RISK_LEVEL_FILTERS:
        raise InvalidFilterError(f"risk_level must be one of {RISK_LEVEL_FILTERS}, got {risk_level!r}")
    return level


def validate_metric(metric):
    if metric is None:
        return "change_count"
    if metric not in METRICS:
        raise InvalidFilterError(f"metric must be one of {METRICS}, got {metric!r}")
    return metric


def filter_risk_level(frame, risk_level, column):
    level = validate_risk_level(risk_level)
    if level == "all" or frame.empty:
        return frame
    return frame[frame[column] == level].reset_index(drop=True)


class AnalysisFilter:
    """Time range and file scoping shared by all analyses.

    Args:
        start_date: inclusive lower bound on commit timestamps (str, date, datetime or Timestamp)
        end_date: inclusive upper bound; a date without a time covers that whole day
        path_prefix (Optional[str]): directory scope, ``src`` matches ``src/a.py`` but not ``srcx/a.py``
        file_types: extensions to keep, see :func:`parse_file_types`

    Naive datetimes are read as UTC.

    Raises:
        InvalidFilterError: on unparseable dates or when start_date is after end_date
    """

    def __init__(self, start_date=None, end_date=None, path_prefix=None, file_types=None):
        self.start_date = _parse_bound(start_date, "start_date")
        self.end_date = _parse_bound(end_date, "end_date", end=True)
        if self.start_date is not None and self.end_date is not None and self.start_date > self.end_date:
            raise InvalidFilterError(f"start_date {self.start_date} is after end_date {self.end_date}")

        prefix = normalize_path(path_prefix).rstrip("/") if path_prefix else ""
        self.path_prefix = prefix or None
        self.file_types = parse_file_types(file_types)

    @property
    def restricts_files(self):
        return self.path_prefix is not None or bool(self.file_types)

    def matches_path(self, path):
        if self.path_prefix is not None:
            if path != self.path_prefix and not path.startswith(self.path_prefix + "/"):
                return False
        if self.file_types and file_extension(path) not in self.file_types:
            return False
        return True

    def _time_mask(self, timestamps):
        mask = pd.Series(True, index=timestamps.index)
        if self.start_date is not None:
            mask &= timestamps >= self.start_date
        if self.end_date is not None:
            mask &= timestamps <= self.end_date
        return mask

    def apply(self, history):
        """Filters a joined history frame by time range and file scope."""
        if history.empty:
            return history
        mask = self._time_mask(history["timestamp"])
        if self.restricts_files:
            mask &= history["file_path"].map(self.matches_path).astype(bool)
        return history[mask].reset_index(drop=True)

    def apply_commits(self, commits, history=None):
        """Filters commits by time range; with a file scope, keeps only commits present in ``history``."""
        if commits.empty:
            return commits
        out = commits[self._time_mask(commits["timestamp"])]
        if self.restricts_files and history is not None:
            out = out[out["id"].isin(history["commit_id"])]
        return out.reset_index(drop=True)

    def __repr__(self):
        return (
            f"AnalysisFilter(start_date={self.start_date}, end_date={self.end_date}, "
            f"path_prefix={self.path_prefix!r}, file_types={sorted(self.file_types)})"
        )


def paginate(frame, page=1, page_size=20):
    """Slices one page out of a ranked frame.

    Args:
        frame (DataFrame): the ranked results
        page (int): 1-based page number
        page_size (int): rows per page

    Returns:
        tuple: the page (DataFrame) and ``{"page", "limit", "total", "total_pages"}``
    """
    for name, value in (("page", page), ("page_size", page_size)):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
            raise InvalidFilterError(f"{name} must be a positive integer, got {value!r}")
    page, page_size = int(page), int(page_size)

    total = len(frame)
    start = (page - 1) * page_size
    rows = frame.iloc[start : start + page_size].reset_index(drop=True)
    return rows, {
        "page": page,
        "limit": page_size,
        "total": total,
        "total_pages": math.ceil(total / page_size),
    }
