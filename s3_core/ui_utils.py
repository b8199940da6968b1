from __future__ import annotations
"""UI-agnostic helpers for formatting listing entries."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version

DIST_NAME = "pys3core"

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg"})
VIDEO_EXTENSIONS = frozenset({"mp4", "webm", "ogv"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "m4a"})
DOCUMENT_EXTENSIONS = frozenset({"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt", "csv"})
ARCHIVE_EXTENSIONS = frozenset({"zip", "rar"})
PREVIEWABLE_EXTENSIONS = IMAGE_EXTENSIONS | {"pdf", "mp4", "webm", "mp3", "wav", "txt"}


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name=dist_name,
            version="",
            summary="SigV4 signing and listing client for S3-compatible stores.",
        )
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: datetime | None) -> str:
    if not last_modified:
        return "-"
    return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def get_extension(filename: str) -> str:
    base = filename.rstrip("/").rsplit("/", 1)[-1]
    stem, dot, extension = base.rpartition(".")
    if not dot or not stem:
        return ""
    return extension.lower()


def file_kind(filename: str) -> str:
    """Classify ``filename`` as image, video, audio, document, archive or other."""

    extension = get_extension(filename)
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension in VIDEO_EXTENSIONS:
        return "video"
    if extension in AUDIO_EXTENSIONS:
        return "audio"
    if extension in DOCUMENT_EXTENSIONS:
        return "document"
    if extension in ARCHIVE_EXTENSIONS:
        return "archive"
    return "other"


def is_previewable(filename: str) -> bool:
    return get_extension(filename) in PREVIEWABLE_EXTENSIONS
