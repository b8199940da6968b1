from __future__ import annotations
"""Percent-encoding rules used by SigV4 canonicalization."""

_UNRESERVED = frozenset(
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)
_SLASH = ord("/")


def uri_encode(value: str | bytes, encode_slash: bool = True) -> str:
    """Percent-encode ``value`` the way AWS canonical requests expect.

    Works on the UTF-8 bytes of the input, so a multibyte character yields
    one ``%XX`` triplet per byte. Unreserved characters (``A-Z a-z 0-9 - _ . ~``)
    are kept as-is and ``/`` is kept only when ``encode_slash`` is false.
    """

    data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    parts: list[str] = []
    for byte in data:
        if byte in _UNRESERVED or (byte == _SLASH and not encode_slash):
            parts.append(chr(byte))
        else:
            parts.append(f"%{byte:02X}")
    return "".join(parts)


def escape_dot_segments(path: str) -> str:
    """Escape ``.`` and ``..`` path segments so HTTP clients do not collapse them.

    The escaped form decodes back to the same key, so the canonical path a
    store computes is unchanged.
    """

    return "/".join(
        segment.replace(".", "%2E") if segment in (".", "..") else segment
        for segment in path.split("/")
    )
