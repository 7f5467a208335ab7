"""Reader configuration: options shared by the file readers and the CLI.

Every option has a safe default; environment variables can override them
for batch runs without touching the command line.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ReaderConfig:
    """Runtime options for reading E-Prime files."""

    # Preferred output column order; unnamed columns follow in first-seen order
    columns: List[str] = field(default_factory=list)

    # Key whose value names a level when renaming ambiguous columns
    # (None: use the header's LevelName declarations)
    level_name_key: Optional[str] = None

    # Add Block/Trial/... counter columns to log-file output
    level_counters: bool = True

    # Force an input encoding (None: sniff the byte-order mark)
    encoding: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ReaderConfig":
        """Build config from environment variables with safe defaults."""
        cols = os.environ.get("EPRIME_COLUMNS", "")
        return cls(
            columns=[c.strip() for c in cols.split(",") if c.strip()],
            level_name_key=os.environ.get("EPRIME_LEVEL_NAME_KEY") or None,
            level_counters=_env_flag("EPRIME_LEVEL_COUNTERS", True),
            encoding=os.environ.get("EPRIME_ENCODING") or None,
        )


_default_config: Optional[ReaderConfig] = None


def get_config() -> ReaderConfig:
    """Return the current global config (lazily initialised from env)."""
    global _default_config
    if _default_config is None:
        _default_config = ReaderConfig.from_env()
    return _default_config


def set_config(cfg: Optional[ReaderConfig]) -> None:
    """Override the global config (mainly for tests); None re-reads the env."""
    global _default_config
    _default_config = cfg
