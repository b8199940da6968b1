from __future__ import annotations
"""S3-compatible client built on the SigV4 signer."""
from datetime import datetime
from email.utils import parsedate_to_datetime
import logging
from typing import Iterator

import httpx

from .encoding import escape_dot_segments, uri_encode
from .listing import parse_buckets, parse_error, parse_listing, parse_size, parse_timestamp
from .models import Bucket, ListingResult, ObjectDetails
from .signer import Clock, Credentials, RequestDescriptor, RequestSigner

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_KEYS = 1000
DEFAULT_TIMEOUT = 30.0
META_HEADER_PREFIX = "x-amz-meta-"


class TransportError(RuntimeError):
    """Raised when the HTTP layer fails before a response is received."""


class S3RequestError(RuntimeError):
    """Raised when the store answers with a non-2xx status."""

    def __init__(self, operation: str, status_code: int, body: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.body = body
        self.code, self.message = parse_error(body) if body else (None, None)
        detail = f"{operation} failed ({status_code})"
        super().__init__(f"{detail}: {body}" if body else detail)


class S3Client:
    """Lists and addresses objects of an S3-compatible store using path-style URLs."""

    def __init__(
        self,
        endpoint_url: str,
        credentials: Credentials,
        *,
        http_client: httpx.Client | None = None,
        clock: Clock | None = None,
    ):
        self._endpoint = endpoint_url.rstrip("/")
        self._signer = RequestSigner(credentials, clock=clock)
        self._http = http_client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    @property
    def endpoint_url(self) -> str:
        return self._endpoint

    @property
    def signer(self) -> RequestSigner:
        return self._signer

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "S3Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def bucket_url(self, bucket_name: str) -> str:
        return f"{self._endpoint}/{uri_encode(bucket_name)}"

    def object_url(self, bucket_name: str, key: str) -> str:
        return f"{self.bucket_url(bucket_name)}/{escape_dot_segments(uri_encode(key, encode_slash=False))}"

    def list_buckets(self) -> list[Bucket]:
        """Return the buckets visible to the credentials."""

        response = self._send("ListBuckets", "GET", f"{self._endpoint}/")
        return parse_buckets(response.content)

    def list_objects(
        self,
        bucket_name: str,
        *,
        prefix: str = "",
        continuation_token: str | None = None,
        max_keys: int = DEFAULT_MAX_KEYS,
        delimiter: str = "/",
    ) -> ListingResult:
        """Return one page of folders and files directly under ``prefix``."""

        params: dict[str, str] = {"list-type": "2", "delimiter": delimiter}
        if prefix:
            params["prefix"] = prefix
        if continuation_token:
            params["continuation-token"] = continuation_token
        params["max-keys"] = str(max_keys)

        query = "&".join(f"{uri_encode(name)}={uri_encode(value)}" for name, value in params.items())
        url = f"{self.bucket_url(bucket_name)}?{query}"
        response = self._send("ListObjects", "GET", url)
        return parse_listing(response.content, prefix)

    def iter_listing(
        self,
        bucket_name: str,
        *,
        prefix: str = "",
        max_items: int | None = None,
        page_size: int = DEFAULT_MAX_KEYS,
    ) -> Iterator[ListingResult]:
        """Yield listing pages, following continuation tokens.

        Stops once the store reports the last page or ``max_items`` folders
        and files have been yielded.
        """

        token: str | None = None
        remaining = max_items
        while remaining is None or remaining > 0:
            max_keys = page_size if remaining is None else min(remaining, page_size)
            page = self.list_objects(
                bucket_name,
                prefix=prefix,
                continuation_token=token,
                max_keys=max_keys,
            )
            yield page
            if remaining is not None:
                remaining -= page.entry_count
            if not page.is_truncated or not page.continuation_token:
                break
            token = page.continuation_token

    def head_object(self, bucket_name: str, key: str) -> ObjectDetails:
        """Fetch metadata about a single object."""

        response = self._send("HeadObject", "HEAD", self.object_url(bucket_name, key))
        headers = response.headers
        etag = headers.get("etag")
        metadata = {
            name.lower()[len(META_HEADER_PREFIX):]: value
            for name, value in headers.items()
            if name.lower().startswith(META_HEADER_PREFIX)
        }
        return ObjectDetails(
            bucket=bucket_name,
            key=key,
            size=parse_size(headers.get("content-length", "0")),
            content_type=headers.get("content-type") or "application/octet-stream",
            last_modified=_parse_http_date(headers.get("last-modified")),
            etag=etag.replace('"', "") if etag else None,
            metadata=metadata,
        )

    def presigned_url(self, bucket_name: str, key: str, expires_in: int = 3600) -> str:
        """Create a time-limited GET URL for downloading or streaming an object."""

        return self._signer.presign(self.object_url(bucket_name, key), expires_in)

    def _send(self, operation: str, method: str, url: str) -> httpx.Response:
        signed = self._signer.sign(RequestDescriptor(method=method, url=url))
        LOGGER.debug("%s: %s %s", operation, method, url.split("?", 1)[0])
        try:
            response = self._http.request(method, signed.url, headers=signed.headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"{operation} failed: {exc}") from exc
        if not response.is_success:
            LOGGER.debug("%s returned status %d", operation, response.status_code)
            raise S3RequestError(operation, response.status_code, response.text)
        return response


def _parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return parse_timestamp(value)
