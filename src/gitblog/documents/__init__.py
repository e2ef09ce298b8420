from gitblog.documents.loader import load_snapshot, read_repository_metadata
from gitblog.documents.models import Article, FileTimestamps, SnapshotIndex
from gitblog.documents.parser import parse_document

__all__ = [
    "Article",
    "FileTimestamps",
    "SnapshotIndex",
    "load_snapshot",
    "parse_document",
    "read_repository_metadata",
]
