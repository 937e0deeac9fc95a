# === FILE: site_migrate/config.py ===
"""
Loading and validation of the site_migrate configuration.
Pydantic describes the schema and checks the data.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SITEMAP_USER_AGENT = "Mozilla/5.0 (compatible; SiteMigrate/1.0)"


class AuditConfig(BaseModel):
    """Settings shared by the crawler, the sitemap resolver and the orchestrator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_pages: int = Field(10000, ge=1, description="Hard limit of pages per site crawl.")
    concurrency: int = Field(10, ge=1, description="Simultaneous fetches per site crawl.")
    timeout: float = Field(10.0, gt=0, description="Timeout of one page fetch (seconds).")
    sitemap_timeout: float = Field(30.0, gt=0, description="Timeout of one sitemap fetch.")
    sitemap_max_depth: int = Field(3, ge=0, description="Maximum sitemap-index nesting.")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="User-Agent header.")
    sitemap_user_agent: str = Field(SITEMAP_USER_AGENT, min_length=1)
    cache_ttl: int = Field(3600, ge=1, description="Expiry of cached reports (seconds).")
    redis_url: Optional[str] = Field(None, description="Redis URL; in-process cache if absent.")
    store_path: Optional[Path] = Field(None, description="JSON file for project records.")

    @field_validator("redis_url", mode="before")
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None] = None) -> AuditConfig:
    """
    Read YAML or JSON and return a validated AuditConfig.

    Without an explicit path, ``configs/default.yaml`` is used when present and the
    built-in defaults otherwise. An explicit path that does not exist raises
    FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return AuditConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    return AuditConfig(**data)
