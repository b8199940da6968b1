from __future__ import annotations
"""AWS Signature Version 4 signing for S3-compatible stores."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
import hashlib
import hmac
import logging
from typing import Callable, Mapping
from urllib.parse import SplitResult, urlsplit

from .encoding import escape_dot_segments
from .canonical import (
    UNSIGNED_PAYLOAD,
    build_canonical_request,
    canonical_query_string,
    canonical_uri,
    hash_payload,
    parse_query,
)

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"
MAX_PRESIGN_EXPIRES = 7 * 24 * 60 * 60
DEFAULT_PORTS = {"http": 80, "https": 443}

Clock = Callable[[], datetime]

LOGGER = logging.getLogger(__name__)


class InvalidURL(ValueError):
    """Raised when a request URL cannot be split into host, path and query."""


class ClockUnavailable(RuntimeError):
    """Raised when the current time cannot be obtained for signing."""


@dataclass(frozen=True)
class Credentials:
    """Access key pair and the region/service the signatures are scoped to."""

    access_key: str
    secret_key: str = field(repr=False)
    region: str = "us-east-1"
    service: str = "s3"


@dataclass(frozen=True)
class RequestDescriptor:
    """A request to be signed."""

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class SignedRequest:
    """The request URL with the full header set to send, ``Authorization`` included."""

    url: str
    headers: dict[str, str]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """Derive the scoped SigV4 signing key (raw bytes)."""

    k_date = _hmac(f"AWS4{secret_key}".encode("utf-8"), date)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


def credential_scope(date: str, region: str, service: str) -> str:
    return f"{date}/{region}/{service}/{TERMINATOR}"


def string_to_sign(amz_date: str, scope: str, canonical_request: str) -> str:
    digest = hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()
    return "\n".join([ALGORITHM, amz_date, scope, digest])


def format_amz_date(moment: datetime) -> str:
    """Render ``moment`` as ``YYYYMMDDTHHMMSSZ``; naive values are taken as UTC."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _split_url(url: str) -> tuple[SplitResult, str]:
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidURL(f"Invalid URL: {url!r}") from exc
    if parts.scheme not in DEFAULT_PORTS or not hostname:
        raise InvalidURL(f"Invalid URL: {url!r}")
    host = hostname
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != DEFAULT_PORTS[parts.scheme]:
        host = f"{host}:{port}"
    return parts, host


class RequestSigner:
    """Signs requests with a fixed set of credentials.

    Instances hold no mutable state and can be shared between threads. The
    clock is injectable so signatures can be reproduced for a pinned instant.
    """

    def __init__(self, credentials: Credentials, clock: Clock | None = None):
        self._credentials = credentials
        self._clock = clock or _utc_now

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def sign(self, descriptor: RequestDescriptor) -> SignedRequest:
        """Produce the headers for a header-authenticated request.

        Raises:
            InvalidURL: when the descriptor URL has no usable scheme or host.
            ClockUnavailable: when the current time cannot be read.
        """

        parts, host = _split_url(descriptor.url)
        amz_date = self._amz_date()
        date = amz_date[:8]
        creds = self._credentials
        payload_hash = hash_payload(descriptor.body)

        headers: dict[str, str] = {}
        for name, value in descriptor.headers.items():
            headers[name.strip().lower()] = str(value).strip()
        headers.update(
            {
                "host": host,
                "x-amz-date": amz_date,
                "x-amz-content-sha256": payload_hash,
            }
        )

        canonical_request, signed_headers = build_canonical_request(
            descriptor.method,
            parts.path,
            parse_query(parts.query),
            headers,
            payload_hash,
        )
        scope = credential_scope(date, creds.region, creds.service)
        signature = self._signature(date, string_to_sign(amz_date, scope, canonical_request))

        LOGGER.debug("Signed %s request for %s", descriptor.method.upper(), parts.path or "/")
        headers["Authorization"] = (
            f"{ALGORITHM} Credential={creds.access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        return SignedRequest(url=descriptor.url, headers=headers)

    def presign(self, url: str, expires_in: int = 3600) -> str:
        """Return a query-string authenticated GET URL valid for ``expires_in`` seconds.

        Raises:
            InvalidURL: when ``url`` has no usable scheme or host.
            ValueError: when ``expires_in`` is outside ``1..604800``.
        """

        if expires_in <= 0 or expires_in > MAX_PRESIGN_EXPIRES:
            raise ValueError(f"expires_in must be between 1 and {MAX_PRESIGN_EXPIRES} seconds")
        parts, host = _split_url(url)
        amz_date = self._amz_date()
        date = amz_date[:8]
        creds = self._credentials
        scope = credential_scope(date, creds.region, creds.service)

        signing_params = {
            "X-Amz-Algorithm": ALGORITHM,
            "X-Amz-Credential": f"{creds.access_key}/{scope}",
            "X-Amz-Date": amz_date,
            "X-Amz-Expires": str(int(expires_in)),
            "X-Amz-SignedHeaders": "host",
        }
        reserved = {name.lower() for name in signing_params} | {"x-amz-signature"}
        params = [(key, value) for key, value in parse_query(parts.query) if key.lower() not in reserved]
        params.extend(signing_params.items())

        canonical_request, _ = build_canonical_request(
            "GET", parts.path, params, {"host": host}, UNSIGNED_PAYLOAD
        )
        signature = self._signature(date, string_to_sign(amz_date, scope, canonical_request))

        LOGGER.debug("Presigned GET for %s (expires in %ds)", parts.path or "/", expires_in)
        return (
            f"{parts.scheme}://{host}{escape_dot_segments(canonical_uri(parts.path))}"
            f"?{canonical_query_string(params)}&X-Amz-Signature={signature}"
        )

    def _signature(self, date: str, to_sign: str) -> str:
        creds = self._credentials
        key = derive_signing_key(creds.secret_key, date, creds.region, creds.service)
        return hmac.new(key, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    def _amz_date(self) -> str:
        try:
            moment = self._clock()
        except Exception as exc:
            raise ClockUnavailable("Unable to read the current time") from exc
        if not isinstance(moment, datetime):
            raise ClockUnavailable(f"Clock returned {type(moment).__name__}, expected datetime")
        return format_amz_date(moment)
