from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class FileTimestamps:
    """Filesystem timestamps in epoch milliseconds."""

    last_modified: float
    created_at: float


@dataclass(slots=True)
class Article:
    slug: str
    title: str
    meta: Dict[str, Any]
    content: str
    last_modified: float
    created_at: float

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "title": self.title,
            "meta": self.meta,
            "content": self.content,
            "lastModified": self.last_modified,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class SnapshotIndex:
    about: Optional[Article] = None
    articles: list[Article] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
