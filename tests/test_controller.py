import tempfile
import unittest
from pathlib import Path

from s3_core.controller import NotConnectedError, S3Controller
from s3_core.models import Bucket, ListingResult, ObjectDetails
from s3_core.profiles import ConnectionProfile
from s3_core.services import S3RequestError
from s3_core.settings import AppSettings, SettingsStorage


class FakeClient:
    def __init__(self, endpoint_url, credentials):
        self.endpoint_url = endpoint_url
        self.credentials = credentials
        self.buckets = [Bucket(name="bucket-one")]
        self.list_buckets_error = None
        self.list_buckets_calls = 0
        self.list_objects_calls = []
        self.listing = ListingResult(bucket="bucket-one")
        self.head_calls = []
        self.details = ObjectDetails(bucket="bucket-one", key="file.txt")
        self.presign_calls = []
        self.closed = False

    def list_buckets(self):
        self.list_buckets_calls += 1
        if self.list_buckets_error:
            raise self.list_buckets_error
        return self.buckets

    def list_objects(self, bucket_name, *, prefix="", continuation_token=None, max_keys=1000):
        self.list_objects_calls.append(
            {
                "bucket_name": bucket_name,
                "prefix": prefix,
                "continuation_token": continuation_token,
                "max_keys": max_keys,
            }
        )
        return self.listing

    def head_object(self, bucket_name, key):
        self.head_calls.append((bucket_name, key))
        return self.details

    def presigned_url(self, bucket_name, key, expires_in=3600):
        self.presign_calls.append((bucket_name, key, expires_in))
        return "signed-url"

    def close(self):
        self.closed = True


class FakeProfileStorage:
    def __init__(self, profiles=None):
        self._profiles = list(profiles or [])

    def load(self):
        return list(self._profiles)

    def save(self, profiles):
        self._profiles = list(profiles)


class S3ControllerTests(unittest.TestCase):
    def setUp(self):
        self.clients = []
        self.next_error = None
        self.storage = FakeProfileStorage()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.settings_storage = SettingsStorage(Path(self.tmp.name) / "settings.json")
        self.controller = S3Controller(
            client_factory=self._make_client,
            storage=self.storage,
            settings_storage=self.settings_storage,
        )
        self.params = {
            "endpoint_url": "https://example.com",
            "access_key": "access",
            "secret_key": "secret",
        }

    def _make_client(self, endpoint_url, credentials):
        client = FakeClient(endpoint_url, credentials)
        client.list_buckets_error = self.next_error
        self.clients.append(client)
        return client

    def test_connect_creates_client_and_returns_buckets(self):
        buckets = self.controller.connect(**self.params, region="auto")

        self.assertEqual([Bucket(name="bucket-one")], buckets)
        self.assertTrue(self.controller.is_connected)
        client = self.clients[0]
        self.assertEqual("https://example.com", client.endpoint_url)
        self.assertEqual("access", client.credentials.access_key)
        self.assertEqual("secret", client.credentials.secret_key)
        self.assertEqual("auto", client.credentials.region)

    def test_failed_connect_keeps_previous_client(self):
        self.controller.connect(**self.params)
        self.next_error = S3RequestError("ListBuckets", 403, "denied")

        with self.assertRaises(S3RequestError):
            self.controller.connect(**self.params)

        self.assertTrue(self.clients[1].closed)
        self.assertFalse(self.clients[0].closed)
        self.controller.refresh_buckets()
        self.assertEqual(2, self.clients[0].list_buckets_calls)

    def test_reconnect_closes_previous_client(self):
        self.controller.connect(**self.params)
        self.controller.connect(**self.params)

        self.assertTrue(self.clients[0].closed)
        self.assertFalse(self.clients[1].closed)

    def test_refresh_requires_existing_connection(self):
        with self.assertRaises(NotConnectedError):
            self.controller.refresh_buckets()

        self.controller.connect(**self.params)
        self.clients[0].buckets = [Bucket(name="other")]

        self.assertEqual([Bucket(name="other")], self.controller.refresh_buckets())

    def test_list_objects_requires_connection_and_passes_params(self):
        with self.assertRaises(NotConnectedError):
            self.controller.list_objects(bucket_name="bucket-one")

        self.controller.connect(**self.params)
        listing = self.controller.list_objects(
            bucket_name="bucket-one", prefix="folder/", continuation_token="token-1", max_keys=25
        )

        self.assertIs(listing, self.clients[0].listing)
        self.assertEqual(
            {
                "bucket_name": "bucket-one",
                "prefix": "folder/",
                "continuation_token": "token-1",
                "max_keys": 25,
            },
            self.clients[0].list_objects_calls[0],
        )

    def test_list_objects_uses_configured_page_size(self):
        self.controller.save_settings(AppSettings(max_keys=40, presign_expires_in=120))
        self.controller.connect(**self.params)

        self.controller.list_objects(bucket_name="bucket-one")

        self.assertEqual(40, self.clients[0].list_objects_calls[0]["max_keys"])

    def test_get_object_details(self):
        with self.assertRaises(NotConnectedError):
            self.controller.get_object_details(bucket_name="bucket-one", key="file.txt")

        self.controller.connect(**self.params)
        details = self.controller.get_object_details(bucket_name="bucket-one", key="file.txt")

        self.assertIs(details, self.clients[0].details)
        self.assertEqual([("bucket-one", "file.txt")], self.clients[0].head_calls)

    def test_generate_presigned_url_defaults_to_settings(self):
        self.controller.save_settings(AppSettings(presign_expires_in=120))
        self.controller.connect(**self.params)

        url = self.controller.generate_presigned_url(bucket_name="bucket-one", key="file.txt")
        self.controller.generate_presigned_url(bucket_name="bucket-one", key="file.txt", expires_in=60)

        self.assertEqual("signed-url", url)
        self.assertEqual(
            [("bucket-one", "file.txt", 120), ("bucket-one", "file.txt", 60)],
            self.clients[0].presign_calls,
        )

    def test_loads_profiles_from_storage_on_init(self):
        profiles = [ConnectionProfile(name="alpha", endpoint_url="https://one", access_key="a", secret_key="b")]
        controller = S3Controller(
            client_factory=self._make_client,
            storage=FakeProfileStorage(profiles),
            settings_storage=self.settings_storage,
        )

        self.assertEqual(profiles, controller.list_profiles())

    def test_save_profile_creates_updates_and_renames(self):
        profile = ConnectionProfile(name="alpha", endpoint_url="https://one", access_key="a", secret_key="b")
        self.controller.save_profile(profile)
        self.assertEqual([profile], self.controller.list_profiles())

        updated = ConnectionProfile(name="alpha", endpoint_url="https://two", access_key="c", secret_key="d")
        self.controller.save_profile(updated)
        self.assertEqual([updated], self.controller.list_profiles())
        self.assertEqual("https://two", self.storage._profiles[0].endpoint_url)

        renamed = ConnectionProfile(name="beta", endpoint_url="https://two", access_key="c", secret_key="d")
        self.controller.save_profile(renamed, original_name="alpha")
        self.assertEqual([renamed], self.controller.list_profiles())

    def test_delete_profile_removes_and_persists(self):
        profile = ConnectionProfile(name="alpha", endpoint_url="https://one", access_key="a", secret_key="b")
        self.controller.save_profile(profile)
        self.controller.delete_profile("alpha")

        self.assertEqual([], self.controller.list_profiles())
        self.assertEqual([], self.storage._profiles)
        with self.assertRaises(ValueError):
            self.controller.delete_profile("missing")

    def test_connect_with_profile_uses_saved_credentials(self):
        profile = ConnectionProfile(
            name="alpha",
            endpoint_url="https://example",
            access_key="ak",
            secret_key="sk",
            region="auto",
        )
        self.controller.save_profile(profile)

        buckets = self.controller.connect_with_profile("alpha")

        self.assertEqual([Bucket(name="bucket-one")], buckets)
        self.assertEqual("alpha", self.controller.selected_profile)
        credentials = self.clients[0].credentials
        self.assertEqual(("ak", "sk", "auto"), (credentials.access_key, credentials.secret_key, credentials.region))

    def test_connect_with_unknown_profile(self):
        with self.assertRaises(ValueError):
            self.controller.connect_with_profile("missing")
        self.assertFalse(self.controller.is_connected)


if __name__ == "__main__":
    unittest.main()
