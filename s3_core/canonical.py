from __future__ import annotations
"""Canonical request construction for AWS Signature Version 4."""
import hashlib
from typing import Iterable, Mapping
from urllib.parse import parse_qsl, unquote

from .encoding import uri_encode

UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()


def hash_payload(body: bytes | str = b"") -> str:
    """Return the lowercase hex SHA-256 digest of ``body``."""

    if isinstance(body, str):
        body = body.encode("utf-8")
    if not body:
        return EMPTY_PAYLOAD_HASH
    return hashlib.sha256(body).hexdigest()


def canonical_uri(path: str) -> str:
    """Single-encode a request path, keeping slashes.

    The path may arrive percent-encoded already, so it is decoded once first.
    S3 does not normalise ``.``/``..`` segments or repeated slashes.
    """

    if not path:
        return "/"
    return uri_encode(unquote(path), encode_slash=False)


def parse_query(query: str) -> list[tuple[str, str]]:
    """Split a raw query string into decoded ``(key, value)`` pairs."""

    if not query:
        return []
    return parse_qsl(query, keep_blank_values=True)


def canonical_query_string(params: Iterable[tuple[str, str]]) -> str:
    encoded = sorted((uri_encode(key), uri_encode(value)) for key, value in params)
    return "&".join(f"{key}={value}" for key, value in encoded)


def canonical_headers(headers: Mapping[str, str]) -> tuple[str, str]:
    """Return ``(canonical_headers_block, signed_header_names)``.

    Header names are lower-cased once; when two names differ only by case the
    later one wins.
    """

    lowered: dict[str, str] = {}
    for name, value in headers.items():
        lowered[name.strip().lower()] = str(value).strip()
    names = sorted(lowered)
    block = "".join(f"{name}:{lowered[name]}\n" for name in names)
    return block, ";".join(names)


def build_canonical_request(
    method: str,
    path: str,
    query_params: Iterable[tuple[str, str]],
    headers: Mapping[str, str],
    payload_hash: str,
) -> tuple[str, str]:
    """Assemble the canonical request.

    Returns:
        A ``(canonical_request, signed_header_names)`` tuple.
    """

    header_block, signed_headers = canonical_headers(headers)
    canonical_request = "\n".join(
        [
            method.upper(),
            canonical_uri(path),
            canonical_query_string(query_params),
            header_block,
            signed_headers,
            payload_hash,
        ]
    )
    return canonical_request, signed_headers
