from __future__ import annotations
"""Decoding of S3 XML list responses into listing models.

The decoder is driven by an explicit schema: every field declares whether it
may repeat, and repeated fields always decode to a list whatever the number
of matching elements. Tags are compared on their local name so the S3
default namespace does not have to be spelled out.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Optional
from xml.etree import ElementTree

from .models import Bucket, FileObject, Folder, ListingResult

LOGGER = logging.getLogger(__name__)


class MalformedResponse(ValueError):
    """Raised when a response body lacks the expected XML root element."""


@dataclass(frozen=True)
class XmlField:
    tag: str
    name: Optional[str] = None
    repeated: bool = False
    schema: Optional["XmlSchema"] = None

    @property
    def key(self) -> str:
        return self.name or self.tag


@dataclass(frozen=True)
class XmlSchema:
    root: str
    fields: tuple[XmlField, ...] = ()


BUCKET_SCHEMA = XmlSchema(
    "Bucket",
    (XmlField("Name", "name"), XmlField("CreationDate", "creation_date")),
)

LIST_BUCKETS_SCHEMA = XmlSchema(
    "ListAllMyBucketsResult",
    (
        XmlField(
            "Buckets",
            "buckets",
            schema=XmlSchema("Buckets", (XmlField("Bucket", "items", repeated=True, schema=BUCKET_SCHEMA),)),
        ),
    ),
)

CONTENTS_SCHEMA = XmlSchema(
    "Contents",
    (
        XmlField("Key", "key"),
        XmlField("LastModified", "last_modified"),
        XmlField("ETag", "etag"),
        XmlField("Size", "size"),
        XmlField("StorageClass", "storage_class"),
    ),
)

LIST_OBJECTS_SCHEMA = XmlSchema(
    "ListBucketResult",
    (
        XmlField("Name", "bucket"),
        XmlField("Prefix", "prefix"),
        XmlField("Delimiter", "delimiter"),
        XmlField("IsTruncated", "is_truncated"),
        XmlField("NextContinuationToken", "next_continuation_token"),
        XmlField("Contents", "contents", repeated=True, schema=CONTENTS_SCHEMA),
        XmlField(
            "CommonPrefixes",
            "common_prefixes",
            repeated=True,
            schema=XmlSchema("CommonPrefixes", (XmlField("Prefix", "prefix"),)),
        ),
    ),
)

ERROR_SCHEMA = XmlSchema(
    "Error",
    (XmlField("Code", "code"), XmlField("Message", "message")),
)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def decode_element(element: ElementTree.Element, schema: XmlSchema) -> dict[str, object]:
    """Decode the children of ``element`` according to ``schema``.

    Scalar fields yield the text of the first matching child or ``None``;
    repeated fields yield a list. Unknown children are ignored.
    """

    children: dict[str, list[ElementTree.Element]] = {}
    for child in element:
        children.setdefault(_local_name(child.tag), []).append(child)

    decoded: dict[str, object] = {}
    for spec in schema.fields:
        matches = children.get(spec.tag, [])
        if spec.repeated:
            decoded[spec.key] = [_decode_value(match, spec) for match in matches]
        else:
            decoded[spec.key] = _decode_value(matches[0], spec) if matches else None
    return decoded


def _decode_value(element: ElementTree.Element, spec: XmlField) -> object:
    if spec.schema is not None:
        return decode_element(element, spec.schema)
    return element.text or ""


def decode_document(xml: str | bytes, schema: XmlSchema) -> dict[str, object]:
    """Parse ``xml`` and decode its root element.

    Raises:
        MalformedResponse: when the body is not XML or the root is not ``schema.root``.
    """

    if not xml or not xml.strip():
        raise MalformedResponse(f"Empty response, expected <{schema.root}>")
    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as exc:
        raise MalformedResponse(f"Response is not valid XML: {exc}") from exc
    if _local_name(root.tag) != schema.root:
        raise MalformedResponse(
            f"Expected <{schema.root}> root element, got <{_local_name(root.tag)}>"
        )
    return decode_element(root, schema)


def parse_size(value: object) -> int:
    try:
        size = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(size, 0)


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _strip_prefix(value: str, prefix: str) -> str:
    if prefix and value.startswith(prefix):
        return value[len(prefix):]
    return value


def parse_buckets(xml: str | bytes) -> list[Bucket]:
    """Map a ListBuckets response to :class:`Bucket` values."""

    document = decode_document(xml, LIST_BUCKETS_SCHEMA)
    container = document["buckets"] or {"items": []}
    buckets = [
        Bucket(name=entry["name"] or "", creation_date=parse_timestamp(entry["creation_date"]))
        for entry in container["items"]
    ]
    LOGGER.debug("Parsed %d bucket(s)", len(buckets))
    return buckets


def parse_listing(xml: str | bytes, requested_prefix: str | None = None) -> ListingResult:
    """Map a ListObjectsV2 response to a :class:`ListingResult`.

    ``requested_prefix`` defaults to the ``<Prefix>`` echoed by the store. The
    directory marker object (key equal to the prefix) is left out.
    """

    document = decode_document(xml, LIST_OBJECTS_SCHEMA)
    prefix = requested_prefix if requested_prefix is not None else (document["prefix"] or "")
    delimiter = document["delimiter"] or "/"

    folders: list[Folder] = []
    for entry in document["common_prefixes"]:
        folder_prefix = entry["prefix"] or ""
        if not folder_prefix.endswith(delimiter):
            folder_prefix += delimiter
        name = _strip_prefix(folder_prefix, prefix)[: -len(delimiter)]
        folders.append(Folder(prefix=folder_prefix, name=name))

    files: list[FileObject] = []
    for entry in document["contents"]:
        key = entry["key"] or ""
        if key == prefix:
            continue
        etag = entry["etag"]
        files.append(
            FileObject(
                key=key,
                name=_strip_prefix(key, prefix),
                size=parse_size(entry["size"]),
                last_modified=parse_timestamp(entry["last_modified"]),
                etag=etag.replace('"', "") if etag else None,
                storage_class=entry["storage_class"] or None,
            )
        )

    LOGGER.debug("Parsed listing for prefix '%s': %d folder(s), %d file(s)", prefix, len(folders), len(files))
    return ListingResult(
        bucket=document["bucket"] or "",
        prefix=prefix,
        delimiter=delimiter,
        folders=tuple(folders),
        files=tuple(files),
        is_truncated=parse_bool(document["is_truncated"]),
        continuation_token=document["next_continuation_token"] or None,
    )


def parse_error(xml: str | bytes) -> tuple[str | None, str | None]:
    """Extract ``(code, message)`` from an S3 ``<Error>`` body, if it is one."""

    try:
        document = decode_document(xml, ERROR_SCHEMA)
    except MalformedResponse:
        return None, None
    return document["code"] or None, document["message"] or None
