# File: tests/test_config.py
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from site_migrate.config import AuditConfig, load_config


def write_file(tmp_path: Path, content: str, suffix: str) -> Path:
    path = tmp_path / f"config{suffix}"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "content,suffix,expect_exc",
    [
        ("max_pages: 50\nconcurrency: 3", ".yaml", None),
        (json.dumps({"max_pages": 50, "concurrency": 3}), ".json", None),
        ("max_pages: 0", ".yaml", ValidationError),
        ("unknown_option: 1", ".yaml", ValidationError),
        ("not: a: mapping", ".yaml", ValueError),
        ("- just\n- a list", ".yaml", TypeError),
        ("{broken json", ".json", ValueError),
        ("max_pages = 1", ".toml", ValueError),
    ],
)
def test_load_config_variants(tmp_path, content, suffix, expect_exc):
    cfg_path = write_file(tmp_path, content, suffix)
    if expect_exc:
        with pytest.raises(expect_exc):
            load_config(cfg_path)
    else:
        cfg = load_config(cfg_path)
        assert isinstance(cfg, AuditConfig)
        assert cfg.max_pages == 50
        assert cfg.concurrency == 3
        assert cfg.cache_ttl == 3600


def test_defaults_without_default_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = load_config(None)
    assert cfg == AuditConfig()
    assert cfg.max_pages == 10000
    assert cfg.concurrency == 10
    assert cfg.sitemap_timeout == 30.0
    assert cfg.redis_url is None


def test_default_file_is_picked_up(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "configs").mkdir()
    (tmp_path / "configs" / "default.yaml").write_text("concurrency: 2\n", encoding="utf-8")
    assert load_config(None).concurrency == 2


def test_explicit_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_blank_redis_url_means_no_redis(tmp_path):
    cfg = load_config(write_file(tmp_path, "redis_url: '  '", ".yaml"))
    assert cfg.redis_url is None


def test_config_is_frozen():
    cfg = AuditConfig()
    with pytest.raises(ValidationError):
        cfg.max_pages = 5
