from __future__ import annotations

import hashlib
import re

from gitblog.errors import InvalidIdentifier

_SEGMENT = re.compile(r"[A-Za-z0-9_.-]+")


def derive_key(identifier: str) -> str:
    """Return the snapshot directory name for a repository identifier (SHA-256, hex)."""
    return hashlib.sha256(identifier.encode("utf-8")).hexdigest()


def normalize_identifier(raw: str) -> str:
    """
    Validate an `owner/name` repository identifier and return it without surrounding slashes.

    Raises InvalidIdentifier for anything else, including path traversal segments.
    """
    identifier = raw.strip().strip("/")
    parts = identifier.split("/")
    if len(parts) != 2 or not all(_SEGMENT.fullmatch(part) and part not in (".", "..") for part in parts):
        raise InvalidIdentifier(f"Expected an 'owner/name' repository identifier, got: {raw!r}")
    return identifier
