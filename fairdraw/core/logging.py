"""Logging setup shared by the API and the draw workers."""
from __future__ import annotations

import logging.config
from pathlib import Path
from typing import Any

import yaml

from fairdraw.core.config import Settings

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "configs" / "logging.yaml"


def load_logging_config(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as config_file:
        config = yaml.safe_load(config_file) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Logging configuration in {path} must be a mapping")
    return config


def configure_logging(settings: Settings | None = None) -> Path | None:
    """Apply the YAML dictConfig, or a plain console setup when no file exists.

    Returns the configuration path that was applied.
    """
    path = DEFAULT_CONFIG_PATH
    level = "INFO"
    if settings is not None:
        level = settings.log_level.upper()
        if settings.logging_config_path:
            path = Path(settings.logging_config_path)

    if not path.exists():
        logging.basicConfig(level=level)
        return None

    config = load_logging_config(path)
    if settings is not None:
        config.setdefault("root", {})["level"] = level
    logging.config.dictConfig(config)
    return path


__all__ = ["DEFAULT_CONFIG_PATH", "configure_logging", "load_logging_config"]
