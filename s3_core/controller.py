from __future__ import annotations
"""Controller layer tying saved profiles and settings to an :class:`S3Client`."""

import logging
from typing import Callable

from .models import Bucket, ListingResult, ObjectDetails
from .profiles import DEFAULT_REGION, ConnectionProfile, ProfileStorage
from .services import S3Client
from .settings import AppSettings, SettingsStorage
from .signer import Credentials

ClientFactory = Callable[[str, Credentials], S3Client]

LOGGER = logging.getLogger(__name__)


class NotConnectedError(RuntimeError):
    """Raised when an S3 operation is attempted before connecting."""


class S3Controller:
    """Coordinates profile selection with one client per connection."""

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        storage: ProfileStorage | None = None,
        settings_storage: SettingsStorage | None = None,
    ):
        self._client_factory = client_factory or S3Client
        self._storage = storage or ProfileStorage()
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._client: S3Client | None = None
        self._profiles: list[ConnectionProfile] = self._storage.load()
        self._selected_profile: str | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def save_settings(self, settings: AppSettings) -> None:
        self._settings_storage.save(settings)
        self._settings = self._settings_storage.load()

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles)

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        if original_name and original_name != profile.name:
            self._profiles = [p for p in self._profiles if p.name != original_name]
        self._upsert_profile(profile)
        self._persist_profiles()

    def delete_profile(self, name: str) -> None:
        before = len(self._profiles)
        self._profiles = [p for p in self._profiles if p.name != name]
        if len(self._profiles) == before:
            raise ValueError(f"Profile '{name}' does not exist")
        if self._selected_profile == name:
            self._selected_profile = None
        self._persist_profiles()

    def get_profile(self, name: str) -> ConnectionProfile:
        for profile in self._profiles:
            if profile.name == name:
                return profile
        raise ValueError(f"Profile '{name}' does not exist")

    def connect_with_profile(self, name: str) -> list[Bucket]:
        profile = self.get_profile(name)
        LOGGER.debug("Connecting using profile '%s'", name)
        buckets = self.connect(
            endpoint_url=profile.endpoint_url,
            access_key=profile.access_key,
            secret_key=profile.secret_key,
            region=profile.region,
        )
        self._selected_profile = name
        return buckets

    def connect(
        self,
        *,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        region: str = DEFAULT_REGION,
    ) -> list[Bucket]:
        """Open a client for the endpoint and return its buckets.

        The previous client is kept when listing buckets fails.
        """

        credentials = Credentials(access_key=access_key, secret_key=secret_key, region=region or DEFAULT_REGION)
        client = self._client_factory(endpoint_url, credentials)
        try:
            buckets = client.list_buckets()
        except Exception:
            client.close()
            raise
        self.disconnect()
        self._client = client
        LOGGER.debug("Connected to %s (%d buckets)", endpoint_url, len(buckets))
        return buckets

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def refresh_buckets(self) -> list[Bucket]:
        return self._require_connection().list_buckets()

    def list_objects(
        self,
        *,
        bucket_name: str,
        prefix: str = "",
        continuation_token: str | None = None,
        max_keys: int | None = None,
    ) -> ListingResult:
        client = self._require_connection()
        return client.list_objects(
            bucket_name,
            prefix=prefix,
            continuation_token=continuation_token,
            max_keys=max_keys or self._settings.max_keys,
        )

    def get_object_details(self, *, bucket_name: str, key: str) -> ObjectDetails:
        return self._require_connection().head_object(bucket_name, key)

    def generate_presigned_url(self, *, bucket_name: str, key: str, expires_in: int | None = None) -> str:
        client = self._require_connection()
        return client.presigned_url(bucket_name, key, expires_in or self._settings.presign_expires_in)

    def _require_connection(self) -> S3Client:
        if self._client is None:
            raise NotConnectedError("Not connected to S3")
        return self._client

    def _upsert_profile(self, profile: ConnectionProfile) -> None:
        for idx, existing in enumerate(self._profiles):
            if existing.name == profile.name:
                self._profiles[idx] = profile
                break
        else:
            self._profiles.append(profile)

    def _persist_profiles(self) -> None:
        self._storage.save(self._profiles)
