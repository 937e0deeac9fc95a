# === FILE: site_migrate/errors.py ===
"""Exception hierarchy of site_migrate.

Fetch failures are never raised: they degrade to a zero ``PageData`` at the fetch
boundary. The classes below cover what does propagate.
"""
from __future__ import annotations

__all__ = [
    "SiteMigrateError",
    "ProjectNotFoundError",
    "InvalidProjectError",
    "CacheUnavailableError",
]


class SiteMigrateError(Exception):
    """Base class for all site_migrate errors."""


class ProjectNotFoundError(SiteMigrateError, LookupError):
    """No project record exists for the requested id."""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class InvalidProjectError(SiteMigrateError, ValueError):
    """The URL pair cannot be audited (bad format or same domain on both sides)."""


class CacheUnavailableError(SiteMigrateError):
    """The cache backend could not serve a get/set/delete."""
