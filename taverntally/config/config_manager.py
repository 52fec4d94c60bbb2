#!/usr/bin/env python3
"""
Engine settings for TavernTally

Tunables for the classification engine:
- Staleness and stuck-phase timeouts
- Catch-up detection thresholds
- Trailing window size read at startup
- Which zone names count as the shop
- etc.

Settings are read from ~/.taverntally/settings.json when it exists and can
be overridden per-variable from the environment (TAVERNTALLY_<FIELD>, e.g.
TAVERNTALLY_STALE_AFTER_SECONDS=15). Nothing is ever written back.
"""

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Mapping, Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".taverntally"
SETTINGS_FILE = CONFIG_DIR / "settings.json"
ENV_PREFIX = "TAVERNTALLY_"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class EngineSettings:
    """Settings for the classification engine."""

    # Watchdogs (seconds)
    stale_after_seconds: float = 10.0
    phase_warn_after_seconds: float = 300.0
    phase_force_after_seconds: float = 600.0

    # Catch-up detection: card-id lines needed with / without the game-type marker
    catchup_marker_threshold: int = 2
    catchup_card_threshold: int = 5

    # Trailing window replayed at startup
    trailing_window_lines: int = 500
    trailing_window_bytes: int = 50000

    # Shop zone disambiguation
    shop_zone_names: List[str] = field(default_factory=lambda: ["SETASIDE"])
    shop_requires_card_id: bool = True

    # Diagnostics kept in memory
    diagnostics_buffer: int = 200

    log_level: str = "INFO"

    def __post_init__(self):
        """Validate and normalize after initialization."""
        self.log_level = str(self.log_level).upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}. Must be one of {sorted(VALID_LOG_LEVELS)}")

        for name in ("stale_after_seconds", "phase_warn_after_seconds", "phase_force_after_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        if self.phase_force_after_seconds < self.phase_warn_after_seconds:
            raise ValueError(
                f"phase_force_after_seconds ({self.phase_force_after_seconds}) must not be "
                f"shorter than phase_warn_after_seconds ({self.phase_warn_after_seconds})"
            )

        for name in ("catchup_marker_threshold", "catchup_card_threshold", "trailing_window_lines",
                     "trailing_window_bytes", "diagnostics_buffer"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")

        if isinstance(self.shop_zone_names, str):
            self.shop_zone_names = [self.shop_zone_names]
        self.shop_zone_names = [name.strip().upper() for name in self.shop_zone_names if name.strip()]

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "EngineSettings":
        """Load settings from file, or defaults when there is none."""
        path = Path(path) if path else SETTINGS_FILE
        if not path.exists():
            logger.info(f"No settings file at {path}. Using defaults.")
            return cls()

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load settings from {path}: {e}. Using defaults.")
            return cls()

        if not isinstance(data, dict):
            logger.warning(f"Settings file {path} does not contain an object. Using defaults.")
            return cls()

        known = {f.name for f in fields(cls)}
        for key in sorted(set(data) - known):
            logger.warning(f"Unknown setting: {key}")
        settings = cls(**{key: value for key, value in data.items() if key in known})
        logger.debug(f"Loaded settings from {path}")
        return settings

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """
        Return a copy with TAVERNTALLY_<FIELD> environment variables applied.

        Values are converted to the type of the field's default. Lists are
        comma separated.
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for f in fields(self):
            raw = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            current = getattr(self, f.name)
            try:
                overrides[f.name] = _convert(raw, current)
            except ValueError as e:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r} ({e})") from e
            logger.debug(f"Setting {f.name} overridden from environment")
        return dataclasses.replace(self, **overrides) if overrides else self

    def __repr__(self) -> str:
        return (
            f"EngineSettings("
            f"stale={self.stale_after_seconds}s, "
            f"phase_warn={self.phase_warn_after_seconds}s, "
            f"phase_force={self.phase_force_after_seconds}s, "
            f"shop_zones={self.shop_zone_names}"
            f")"
        )


def _convert(raw: str, current):
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError("expected a boolean")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw
