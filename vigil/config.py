"""
vigil.config — YAML Configuration Loader
=========================================

**Why this file exists:**
This module reads ``config.yaml`` for the tunable knobs of the bot
(inactivity threshold, scan cadence, eviction pacing, leveling ladder).
Secrets (``DISCORD_TOKEN``) and infrastructure (``DATABASE_URL``,
``PORT``) stay in the environment / ``.env``.

Usage::

    from vigil.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.inactive_threshold)        # datetime.timedelta(days=2)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

import yaml

from vigil.constants import (
    DEFAULT_LEVEL_THRESHOLDS,
    DEFAULT_LOG_CHANNEL_KEYWORDS,
    validate_ladder,
)


class ConfigError(ValueError):
    """Raised when ``config.yaml`` contains a malformed value."""


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class VigilConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so an empty file yields the behaviour of the
    original bot: 48 hour threshold, a check every 30 minutes and one
    second between kicks.
    """

    # Inactivity
    inactive_threshold_hours: float = 48
    check_interval_minutes: float = 30
    eviction_delay_seconds: float = 1.0
    eviction_reason: str | None = None
    auto_evict: bool = True
    snapshot_max_age_seconds: float = 3600

    # Persistence
    flush_interval_seconds: float = 60

    # Status probe
    status_port: int = 3000

    # Notifications — first text channel whose name contains one of these
    log_channel_keywords: tuple[str, ...] = DEFAULT_LOG_CHANNEL_KEYWORDS

    # Leveling
    level_thresholds: tuple[int, ...] = DEFAULT_LEVEL_THRESHOLDS
    leaderboard_page_size: int = 10

    def __post_init__(self) -> None:
        if self.inactive_threshold_hours <= 0:
            raise ConfigError("inactive_threshold_hours must be positive")
        if self.check_interval_minutes <= 0:
            raise ConfigError("check_interval_minutes must be positive")
        if self.eviction_delay_seconds < 0:
            raise ConfigError("eviction_delay_seconds cannot be negative")
        if self.flush_interval_seconds <= 0:
            raise ConfigError("flush_interval_seconds must be positive")
        if self.snapshot_max_age_seconds <= 0:
            raise ConfigError("snapshot_max_age_seconds must be positive")
        if self.leaderboard_page_size <= 0:
            raise ConfigError("leaderboard_page_size must be positive")
        try:
            validate_ladder(self.level_thresholds)
        except ValueError as exc:
            raise ConfigError(f"level_thresholds: {exc}") from exc

    @property
    def inactive_threshold(self) -> timedelta:
        return timedelta(hours=self.inactive_threshold_hours)

    @property
    def check_interval(self) -> timedelta:
        return timedelta(minutes=self.check_interval_minutes)

    @property
    def snapshot_max_age(self) -> timedelta:
        return timedelta(seconds=self.snapshot_max_age_seconds)

    @property
    def kick_reason(self) -> str:
        """Audit-log reason attached to every automatic removal."""
        if self.eviction_reason:
            return self.eviction_reason
        return f"Inactive for more than {self.inactive_threshold_hours:g} hours"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def _number(raw: dict, key: str, default: float) -> float:
    value = raw.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}") from None


def load_config(path: str | Path = "config.yaml") -> VigilConfig:
    """Read *path* and return a :class:`VigilConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ConfigError
        If a value is malformed (non-numeric threshold, bad ladder, …).
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ConfigError("config.yaml must contain a mapping at the top level")

    keywords = raw.get("log_channel_keywords", DEFAULT_LOG_CHANNEL_KEYWORDS)
    if isinstance(keywords, str):
        keywords = [keywords]
    thresholds = raw.get("level_thresholds", DEFAULT_LEVEL_THRESHOLDS)
    try:
        thresholds = tuple(int(t) for t in thresholds)
    except (TypeError, ValueError):
        raise ConfigError(
            f"level_thresholds must be a list of integers, got {thresholds!r}"
        ) from None

    return VigilConfig(
        inactive_threshold_hours=_number(raw, "inactive_threshold_hours", 48),
        check_interval_minutes=_number(raw, "check_interval_minutes", 30),
        eviction_delay_seconds=_number(raw, "eviction_delay_seconds", 1.0),
        eviction_reason=raw.get("eviction_reason") or None,
        auto_evict=bool(raw.get("auto_evict", True)),
        snapshot_max_age_seconds=_number(raw, "snapshot_max_age_seconds", 3600),
        flush_interval_seconds=_number(raw, "flush_interval_seconds", 60),
        status_port=int(_number(raw, "status_port", 3000)),
        log_channel_keywords=tuple(str(k).lower() for k in keywords),
        level_thresholds=thresholds,
        leaderboard_page_size=int(_number(raw, "leaderboard_page_size", 10)),
    )
