"""
jrank.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for deployment settings that shape evaluation but
are not part of any rule document: the reference timezone used for
active-hours and weekend checks, the sliding window used by daily caps,
and the log level.  Rule definitions themselves live in the database and
are loaded by :class:`~jrank.engine.catalog.CatalogCache`.

Usage::

    from jrank.config import load_config

    cfg = load_config()             # reads ./config.yaml by default
    print(cfg.reference_timezone)   # "Europe/Istanbul"
    print(cfg.tzinfo)               # zoneinfo.ZoneInfo(key='Europe/Istanbul')
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

_UTC_NAMES = frozenset({"UTC", "Z", "Etc/UTC"})


def resolve_timezone(name: str) -> tzinfo:
    """Return a tzinfo for *name* (``UTC`` or an IANA zone name).

    Raises
    ------
    ValueError
        If *name* is not a known timezone.
    """
    if name in _UTC_NAMES:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown reference timezone: {name!r}") from exc


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Fixed timezone in which activeHours and "weekend" are judged
    reference_timezone: str = "UTC"

    # Trailing window for maxDailyActions (sliding, not calendar day)
    history_window_hours: int = 24

    log_level: str = "INFO"

    # Insert the default rules from seeds/ when the tables are empty
    seed_on_startup: bool = False

    @property
    def tzinfo(self) -> tzinfo:
        return resolve_timezone(self.reference_timezone)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> EngineConfig:
    """Read *path* and return an :class:`EngineConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If ``reference_timezone`` is missing from the YAML file.
    ValueError
        If the timezone is unknown or the window is not positive.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = EngineConfig(
        reference_timezone=str(raw["reference_timezone"]),
        history_window_hours=int(raw.get("history_window_hours", 24)),
        log_level=str(raw.get("log_level", "INFO")).upper(),
        seed_on_startup=bool(raw.get("seed_on_startup", False)),
    )

    # Fail at startup rather than on the first evaluation
    resolve_timezone(cfg.reference_timezone)
    if cfg.history_window_hours <= 0:
        raise ValueError("history_window_hours must be a positive integer")

    return cfg
