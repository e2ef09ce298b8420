from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from gitblog.documents.models import Article, SnapshotIndex
from gitblog.documents.parser import parse_document, timestamps_from_stat

logger = logging.getLogger(__name__)

METADATA_FILENAME = "blog.json"
ABOUT_SLUG = "readme"
MARKDOWN_PATTERN = "*.md"


def _is_contained(file_path: Path, root: Path) -> bool:
    """False for symlinks and for paths that resolve outside `root`."""
    if file_path.is_symlink():
        return False
    try:
        return file_path.resolve().is_relative_to(root)
    except OSError:
        return False


def discover_documents(directory: Path) -> Iterator[tuple[str, Path]]:
    """
    Yield (relative posix path, absolute path) for markdown files, sorted by relative path.

    Symlinked files and files that resolve outside `directory` are skipped.
    """
    root = directory.resolve()
    found: Dict[str, Path] = {}
    for file_path in directory.rglob(MARKDOWN_PATTERN):
        try:
            rel = file_path.relative_to(directory)
        except ValueError:
            continue
        if any(part.startswith(".") for part in rel.parts):
            continue
        if not _is_contained(file_path, root):
            logger.warning("Skipping markdown file outside the snapshot. path=%s", file_path)
            continue
        if not file_path.is_file():
            continue
        found[rel.as_posix()] = file_path
    for rel_path in sorted(found):
        yield rel_path, found[rel_path]


def _read_article(rel_path: str, file_path: Path) -> Article:
    raw = file_path.read_bytes()
    stat = file_path.stat()
    return parse_document(raw, timestamps_from_stat(stat), rel_path)


def load_snapshot(directory: Path) -> SnapshotIndex:
    """
    Build the article index of a snapshot directory.

    The root readme becomes the about-document; every other markdown file is
    an article, most recently modified first. Files that cannot be read or
    decoded are skipped and listed in `skipped`.
    """
    index = SnapshotIndex()
    for rel_path, file_path in discover_documents(directory):
        try:
            article = _read_article(rel_path, file_path)
        except UnicodeDecodeError:
            logger.warning("Skipping non-UTF8 markdown file. path=%s", file_path)
            index.skipped.append(rel_path)
            continue
        except OSError as e:
            logger.warning("Failed to read markdown file. path=%s error=%s", file_path, e)
            index.skipped.append(rel_path)
            continue

        if article.slug.lower() == ABOUT_SLUG:
            index.about = article
        else:
            index.articles.append(article)

    # list.sort is stable, so equal timestamps keep discovery order.
    index.articles.sort(key=lambda article: article.last_modified, reverse=True)
    logger.debug(
        "Snapshot loaded. path=%s articles=%d about=%s skipped=%d",
        directory,
        len(index.articles),
        index.about is not None,
        len(index.skipped),
    )
    return index


def read_repository_metadata(directory: Path, about: Optional[Article]) -> Dict[str, Any]:
    """Load `blog.json` from the snapshot root and attach the about-document."""
    metadata: Dict[str, Any] = {}
    metadata_path = directory / METADATA_FILENAME
    if metadata_path.is_symlink():
        logger.warning("Ignoring symlinked repository metadata. path=%s", metadata_path)
    elif metadata_path.is_file():
        try:
            payload = json.loads(metadata_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning("Ignoring unreadable repository metadata. path=%s error=%s", metadata_path, e)
        else:
            if isinstance(payload, dict):
                metadata = payload
            else:
                logger.warning(
                    "Ignoring repository metadata that is not an object. path=%s type=%s",
                    metadata_path,
                    type(payload).__name__,
                )

    metadata["about"] = about.to_dict() if about is not None else None
    return metadata
