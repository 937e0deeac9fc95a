# File: site_migrate/projects.py
"""site_migrate.projects: migration project records (old site URL, new site URL)."""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from site_migrate.errors import InvalidProjectError, ProjectNotFoundError
from site_migrate.logger import logger
from site_migrate.utils import site_domain

__all__ = ("Project", "ProjectStore")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True, slots=True)
class Project:
    """A migration to audit."""

    id: str
    old_site_url: str
    new_site_url: str
    created_at: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "oldSiteUrl": self.old_site_url,
            "newSiteUrl": self.new_site_url,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Project:
        return cls(
            id=str(data["id"]),
            old_site_url=str(data["oldSiteUrl"]),
            new_site_url=str(data["newSiteUrl"]),
            created_at=str(data.get("createdAt") or _now()),
        )


def validate_pair(old_site_url: str, new_site_url: str) -> None:
    """Reject unparsable URLs and pairs that live on the same base domain."""
    try:
        old_domain = site_domain(old_site_url)
        new_domain = site_domain(new_site_url)
    except ValueError as exc:
        raise InvalidProjectError("Invalid URL format provided.") from exc
    if old_domain == new_domain:
        raise InvalidProjectError(
            f"Old and New sites cannot be the same domain ({old_domain}). "
            "Please use different environments (e.g., production vs staging)."
        )


class ProjectStore:
    """In-memory project registry, optionally mirrored to a JSON file."""

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path: Optional[Path] = Path(path).expanduser() if path else None
        self._projects: Dict[str, Project] = {}
        self._lock = threading.Lock()
        if self.path and self.path.is_file():
            self._load()

    def _load(self) -> None:
        assert self.path is not None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8")) or []
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {self.path}: {exc}") from exc
        for item in raw:
            project = Project.from_dict(item)
            self._projects[project.id] = project
        logger.debug("Loaded %d projects from %s", len(self._projects), self.path)

    def _save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = [p.to_dict() for p in self._projects.values()]
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def create(self, old_site_url: str, new_site_url: str) -> Project:
        validate_pair(old_site_url, new_site_url)
        project = Project(uuid.uuid4().hex, old_site_url.strip(), new_site_url.strip())
        with self._lock:
            self._projects[project.id] = project
            self._save()
        logger.info("Project %s created: %s -> %s", project.id, old_site_url, new_site_url)
        return project

    def get(self, project_id: str) -> Project:
        try:
            return self._projects[project_id]
        except KeyError:
            raise ProjectNotFoundError(project_id) from None

    def __len__(self) -> int:
        return len(self._projects)
