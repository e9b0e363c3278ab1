"""Application configuration helpers."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
CONFIG_PATH = DATA_DIR / "config.json"
ENV_PREFIX = "RECIPEBOX_"
TRUTHY = {"1", "true", "yes", "on"}


class AppConfig(BaseModel):
    """Serializable runtime settings."""

    database_path: str = Field(default_factory=lambda: str(DATA_DIR / "recipebox.db"))
    busy_timeout: float = Field(5.0, gt=0)
    log_level: str = "INFO"
    log_format: str = Field("text", pattern="^(text|json)$")
    seed_default_tags: bool = False


def _ensure_data_dir() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load config from the JSON file, then apply ``RECIPEBOX_*`` overrides."""

    data = _load_config_file(path or CONFIG_PATH)
    data.update(_env_overrides())
    return AppConfig(**data)


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    if path is None:
        _ensure_data_dir()
    with target.open("w", encoding="utf-8") as fp:
        json.dump(config.model_dump(), fp, indent=2)


def _load_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for field in AppConfig.model_fields:
        raw = os.getenv(f"{ENV_PREFIX}{field.upper()}")
        if raw is None:
            continue
        if field == "seed_default_tags":
            overrides[field] = raw.lower() in TRUTHY
        else:
            overrides[field] = raw
    return overrides
