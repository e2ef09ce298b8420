from __future__ import annotations

import json
import logging
import os
import re
from pathlib import PurePosixPath
from typing import Any, Dict

from gitblog.documents.models import Article, FileTimestamps

logger = logging.getLogger(__name__)

HEADER_TERMINATOR = "}\n"
_HEADING_PREFIX = re.compile(r"^#+\s")


def timestamps_from_stat(stat: os.stat_result) -> FileTimestamps:
    """Build FileTimestamps from a stat result; creation falls back to ctime where birthtime is missing."""
    birthtime = getattr(stat, "st_birthtime", None)
    created = birthtime if birthtime is not None else stat.st_ctime
    return FileTimestamps(
        last_modified=stat.st_mtime_ns / 1_000_000,
        created_at=created * 1000.0,
    )


def slug_for(relative_path: str) -> str:
    path = PurePosixPath(relative_path.replace("\\", "/"))
    return path.with_suffix("").as_posix() if path.suffix else path.as_posix()


def split_header(text: str) -> tuple[Dict[str, Any], str]:
    """
    Split a leading `{...}` metadata block from the document body.

    The block runs from the opening brace to the first `}` that is directly
    followed by a newline. Without that terminator the whole text is body.
    """
    if not text.startswith("{"):
        return {}, text
    end = text.find(HEADER_TERMINATOR)
    if end < 0:
        return {}, text

    header = text[: end + 1]
    body = text[end + len(HEADER_TERMINATOR) :]
    try:
        meta = json.loads(header)
    except ValueError as e:
        logger.debug("Ignoring malformed document header. error=%s", e)
        return {}, body
    return meta, body


def resolve_title(meta: Dict[str, Any], content: str, slug: str) -> str:
    title = meta.get("title")
    if title:
        return str(title)
    first_line = content.split("\n", 1)[0]
    # Only a markdown heading line names the document; plain prose falls through to the slug.
    match = _HEADING_PREFIX.match(first_line)
    if match:
        heading = first_line[match.end() :].strip()
        if heading:
            return heading
    return slug


def parse_document(raw: bytes, timestamps: FileTimestamps, relative_path: str) -> Article:
    """
    Parse one markdown file into an Article.

    Raises UnicodeDecodeError for files that are not UTF-8.
    """
    text = raw.decode("utf-8").strip()
    meta, content = split_header(text)
    slug = slug_for(relative_path)
    return Article(
        slug=slug,
        title=resolve_title(meta, content, slug),
        meta=meta,
        content=content,
        last_modified=timestamps.last_modified,
        created_at=timestamps.created_at,
    )
