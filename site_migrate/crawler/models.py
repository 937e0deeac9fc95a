# site_migrate/crawler/models.py
"""
Data models for the site_migrate crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

_TEXT_FIELDS: Tuple[str, ...] = (
    "title",
    "description",
    "h1",
    "keywords",
    "canonical",
    "robots",
    "og_title",
    "og_description",
    "og_image",
)


@dataclass(frozen=True, slots=True)
class PageData:
    """One fetched page. Empty string means the field is absent; status 0 means no response.

    ``url`` is the normalized requested URL and serves as the page identity;
    ``final_url`` is where redirects ended (equal to ``url`` when none happened).
    """

    url: str
    status: int = 0
    title: str = ""
    description: str = ""
    h1: str = ""
    keywords: str = ""
    canonical: str = ""
    robots: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    schemas: FrozenSet[str] = field(default_factory=frozenset)
    links: Tuple[str, ...] = ()
    final_url: str = ""

    def __post_init__(self) -> None:
        if not self.final_url:
            object.__setattr__(self, "final_url", self.url)

    @classmethod
    def empty(cls, url: str, status: int = 0) -> PageData:
        """Zero record for a failed or non-HTML fetch."""
        return cls(url=url, status=status)

    @property
    def ok(self) -> bool:
        return self.status == 200

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "status": self.status}
        data.update({name: getattr(self, name) for name in _TEXT_FIELDS})
        data["schemas"] = sorted(self.schemas)
        data["links"] = list(self.links)
        data["final_url"] = self.final_url
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PageData:
        schemas: Iterable[str] = data.get("schemas") or ()
        links: Iterable[str] = data.get("links") or ()
        final_url: Optional[str] = data.get("final_url")
        return cls(
            url=data["url"],
            status=int(data.get("status", 0)),
            schemas=frozenset(schemas),
            links=tuple(links),
            final_url=final_url or "",
            **{name: str(data.get(name) or "") for name in _TEXT_FIELDS},
        )
