from importlib.metadata import version

from gitrisk.cache import DiskCache, EphemeralCache
from gitrisk.config import AnalysisConfig, InvalidConfigError, RiskThresholds, classify_risk
from gitrisk.filters import AnalysisFilter, InvalidFilterError, paginate
from gitrisk.project import ProjectHistory
from gitrisk.store import (
    GitRepositoryStore,
    HistoryStore,
    HistoryStoreError,
    InMemoryHistoryStore,
    MalformedHistoryError,
)

__version__ = version("git-risk")

__all__ = [
    "ProjectHistory",
    "HistoryStore",
    "InMemoryHistoryStore",
    "GitRepositoryStore",
    "AnalysisConfig",
    "RiskThresholds",
    "AnalysisFilter",
    "EphemeralCache",
    "DiskCache",
    "classify_risk",
    "paginate",
    "HistoryStoreError",
    "MalformedHistoryError",
    "InvalidFilterError",
    "InvalidConfigError",
]
