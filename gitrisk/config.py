"""
.. module:: config
   :platform: Unix, Windows
   :synopsis: Thresholds, caps and the canonical risk classification used by every analyzer


"""

import inspect
import json

from gitrisk.logging import get_logger

logger = get_logger("config")

RISK_LEVELS = ("low", "medium", "high", "critical")


class InvalidConfigError(ValueError):
    """Raised when thresholds are inconsistent or a config source has unknown keys."""

    pass


class RiskThresholds:
    """Lower bounds (exclusive) for the medium, high and critical risk bands of one signal.

    Args:
        critical (float): values strictly above this are critical
        high (float): values strictly above this are high
        medium (float): values strictly above this are medium, anything else is low

    Raises:
        InvalidConfigError: if the bounds are not ordered critical >= high >= medium
    """

    def __init__(self, critical, high, medium):
        if not critical >= high >= medium:
            raise InvalidConfigError(
                f"Risk thresholds must satisfy critical >= high >= medium, got {critical}/{high}/{medium}"
            )
        self.critical = critical
        self.high = high
        self.medium = medium

    @classmethod
    def from_dict(cls, d):
        unknown = set(d) - {"critical", "high", "medium"}
        if unknown:
            raise InvalidConfigError(f"Unknown risk threshold keys: {sorted(unknown)}")
        try:
            return cls(critical=d["critical"], high=d["high"], medium=d["medium"])
        except KeyError as e:
            raise InvalidConfigError(f"Missing risk threshold key: {e}") from e

    def to_dict(self):
        return {"critical": self.critical, "high": self.high, "medium": self.medium}

    def __eq__(self, other):
        return isinstance(other, RiskThresholds) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"RiskThresholds(critical={self.critical}, high={self.high}, medium={self.medium})"


def classify_risk(value, thresholds):
    """Maps a numeric signal onto low/medium/high/critical.

    This is the only place risk bands are decided; every analyzer passes its own
    RiskThresholds instead of comparing against literals.

    Args:
        value (float): the signal, e.g. an ownership percentage or a change count
        thresholds (RiskThresholds): the bands for that signal

    Returns:
        str: one of RISK_LEVELS
    """
    if value > thresholds.critical:
        return "critical"
    if value > thresholds.high:
        return "high"
    if value > thresholds.medium:
        return "medium"
    return "low"


class AnalysisConfig:
    """Every tunable of the analytics engine, with documented defaults.

    Args:
        hotspot_threshold (int): a file is a hotspot when its signal is strictly above this. Defaults to 5.
        hotspot_risk (RiskThresholds): bands for distinct-commit change counts. Defaults to 20/10/5.
        ownership_risk (RiskThresholds): bands for the primary owner's percentage. Defaults to 90/70/40.
        coupling_risk (RiskThresholds): bands for coupling scores. Defaults to 0.9/0.7/0.5.
        sole_owner_percentage (float): above this share a file with few contributors has bus factor 1.
        sole_owner_max_contributors (int): "few contributors" means strictly fewer than this.
        bus_factor_coverage (float): cumulative percentage the bus factor contributors must reach.
        min_shared_commits (int): default minimum co-occurrences before a pair is reported.
        min_coupling_score (float): default minimum coupling score before a pair is reported.
        max_coupling_pairs (int): hard cap on the number of coupling pairs returned.
        max_files_per_commit (int): commits touching more files are left out of pair enumeration.
        trend_months (int): number of most recent monthly buckets kept in the trend.
        top_risk_snapshots (int): number of hotspots listed in the overview.
    """

    def __init__(
        self,
        hotspot_threshold=5,
        hotspot_risk=None,
        ownership_risk=None,
        coupling_risk=None,
        sole_owner_percentage=75.0,
        sole_owner_max_contributors=3,
        bus_factor_coverage=60.0,
        min_shared_commits=2,
        min_coupling_score=0.0,
        max_coupling_pairs=200,
        max_files_per_commit=50,
        trend_months=12,
        top_risk_snapshots=10,
    ):
        self.hotspot_threshold = hotspot_threshold
        self.hotspot_risk = hotspot_risk or RiskThresholds(critical=20, high=10, medium=5)
        self.ownership_risk = ownership_risk or RiskThresholds(critical=90.0, high=70.0, medium=40.0)
        self.coupling_risk = coupling_risk or RiskThresholds(critical=0.9, high=0.7, medium=0.5)
        self.sole_owner_percentage = sole_owner_percentage
        self.sole_owner_max_contributors = sole_owner_max_contributors
        self.bus_factor_coverage = bus_factor_coverage
        self.min_shared_commits = min_shared_commits
        self.min_coupling_score = min_coupling_score
        self.max_coupling_pairs = max_coupling_pairs
        self.max_files_per_commit = max_files_per_commit
        self.trend_months = trend_months
        self.top_risk_snapshots = top_risk_snapshots
        self.validate()

    _THRESHOLD_FIELDS = ("hotspot_risk", "ownership_risk", "coupling_risk")

    def validate(self):
        if self.hotspot_threshold < 0:
            raise InvalidConfigError("hotspot_threshold must be >= 0")
        if not 0 < self.bus_factor_coverage <= 100:
            raise InvalidConfigError("bus_factor_coverage must be in (0, 100]")
        if not 0 <= self.sole_owner_percentage <= 100:
            raise InvalidConfigError("sole_owner_percentage must be in [0, 100]")
        if self.min_shared_commits < 1:
            raise InvalidConfigError("min_shared_commits must be >= 1")
        if not 0.0 <= self.min_coupling_score <= 1.0:
            raise InvalidConfigError("min_coupling_score must be in [0, 1]")
        for name in ("max_coupling_pairs", "trend_months", "top_risk_snapshots", "sole_owner_max_contributors"):
            if getattr(self, name) < 1:
                raise InvalidConfigError(f"{name} must be >= 1")
        # a commit needs at least two files to yield a pair
        if self.max_files_per_commit < 2:
            raise InvalidConfigError("max_files_per_commit must be >= 2")

    @classmethod
    def from_dict(cls, d):
        """Builds a config from plain values, e.g. parsed JSON.

        Threshold groups are given as ``{"critical": .., "high": .., "medium": ..}`` dicts.
        Keys not listed in the constructor are rejected.
        """
        unknown = set(d) - set(_config_fields())
        if unknown:
            raise InvalidConfigError(f"Unknown config keys: {sorted(unknown)}")

        kwargs = dict(d)
        for name in cls._THRESHOLD_FIELDS:
            if isinstance(kwargs.get(name), dict):
                kwargs[name] = RiskThresholds.from_dict(kwargs[name])
        return cls(**kwargs)

    @classmethod
    def from_file(cls, path):
        """Loads a config from a JSON file."""
        logger.debug(f"Loading analysis config from {path}")
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise InvalidConfigError(f"Config file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidConfigError(f"Config file {path} must contain a JSON object")
        config = cls.from_dict(data)
        logger.info(f"Loaded analysis config from {path}")
        return config

    def to_dict(self):
        out = {}
        for name in _config_fields():
            value = getattr(self, name)
            out[name] = value.to_dict() if isinstance(value, RiskThresholds) else value
        return out

    def __repr__(self):
        return f"AnalysisConfig({self.to_dict()})"


def _config_fields():
    return [name for name in inspect.signature(AnalysisConfig.__init__).parameters if name != "self"]
