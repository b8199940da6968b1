from __future__ import annotations
"""Data models representing S3 listings."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Bucket:
    """A bucket returned by ListBuckets."""

    name: str
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class Folder:
    """A common prefix shown as a folder. ``prefix`` always ends with the delimiter."""

    prefix: str
    name: str


@dataclass(frozen=True)
class FileObject:
    """An object entry of a listing."""

    key: str
    name: str
    size: int = 0
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    storage_class: Optional[str] = None


@dataclass(frozen=True)
class ListingResult:
    """Represents one page of a delimited object listing."""

    bucket: str = ""
    prefix: str = ""
    delimiter: str = "/"
    folders: tuple[Folder, ...] = ()
    files: tuple[FileObject, ...] = ()
    is_truncated: bool = False
    continuation_token: Optional[str] = None

    @property
    def entry_count(self) -> int:
        return len(self.folders) + len(self.files)


@dataclass(frozen=True)
class ObjectDetails:
    """Metadata about a single S3 object."""

    bucket: str
    key: str
    size: int = 0
    content_type: str = "application/octet-stream"
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
