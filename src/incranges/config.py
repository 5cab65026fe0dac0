"""Application settings loaded from environment variables or YAML config."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration for incranges.

    Values are resolved in order: constructor kwargs > env vars > YAML file > defaults.
    Environment variables are prefixed with ``INCRANGES_`` (e.g. ``INCRANGES_MAX_LOAD_WORKERS``).
    """

    # -- Supplementary outputs ------------------------------------------------
    compiled_source_suffix: str = ".compiledsource"
    source_ranges_suffix: str = ".sourceranges"
    build_dir: str = ""

    # -- Concurrency ----------------------------------------------------------
    max_load_workers: int = 4

    # -- Diagnostics ----------------------------------------------------------
    show_incremental_decisions: bool = False
    dump_source_ranges: bool = False
    dump_compiled_source_diffs: bool = False
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "INCRANGES_",
    }


def load_settings(config_path: Optional[str | Path] = None) -> Settings:
    """Build ``Settings`` from the environment and an optional YAML file.

    A key present in both the file and an ``INCRANGES_*`` variable takes the
    variable's value.  Keys that name no setting are logged and dropped, and
    ``null`` values leave the default in place.  A *config_path* that does
    not exist is treated like None.
    """
    if config_path is None or not Path(config_path).exists():
        return Settings()

    with Path(config_path).open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, dict):
        return Settings()

    prefix = Settings.model_config["env_prefix"]
    from_env = {name.upper() for name in os.environ}
    from_file: dict = {}
    for key, value in raw.items():
        if key not in Settings.model_fields:
            logger.warning("Ignoring unknown setting %r in %s", key, config_path)
        elif value is not None and f"{prefix}{key}".upper() not in from_env:
            from_file[key] = value
    return Settings(**from_file)
