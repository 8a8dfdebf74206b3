import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError

from travelbook.errors import StorageError
from travelbook.storage import CosStorageClient, InMemoryStorageClient


class InMemoryStorageClientTests(unittest.TestCase):
    def test_url_roundtrip(self):
        storage = InMemoryStorageClient()
        url = storage.upload_bytes("travel_book/a b.jpg", b"data")
        self.assertEqual(storage.path_for_url(url), "travel_book/a b.jpg")
        self.assertEqual(
            storage.path_for_url("https://example.test/storage/travel_book/a%20b.jpg"),
            "travel_book/a b.jpg",
        )

    def test_reserved_characters_in_keys_survive_the_url(self):
        storage = InMemoryStorageClient()
        for path in ("travel_book/a%41.jpg", "travel_book/a#b.jpg", "travel_book/a?b.jpg"):
            with self.subTest(path=path):
                url = storage.upload_bytes(path, b"data")
                self.assertEqual(storage.path_for_url(url), path)

    def test_foreign_urls_are_not_owned(self):
        storage = InMemoryStorageClient()
        self.assertIsNone(storage.path_for_url("https://other.test/storage/a.jpg"))
        self.assertIsNone(storage.path_for_url("https://example.test/elsewhere/a.jpg"))
        self.assertIsNone(storage.path_for_url("https://example.test/storage/"))

    def test_delete_missing_object_raises(self):
        storage = InMemoryStorageClient()
        with self.assertRaises(FileNotFoundError):
            storage.delete("travel_book/missing.jpg")
        self.assertEqual(storage.deleted_paths, ["travel_book/missing.jpg"])


class CosStorageClientTests(unittest.TestCase):
    def _client(self, **kwargs):
        params = dict(
            bucket="photos-123",
            region="ap-guangzhou",
            endpoint="https://cos.ap-guangzhou.myqcloud.com",
            access_key_id="key",
            secret_access_key="secret",
        )
        params.update(kwargs)
        return CosStorageClient(**params)

    @patch("travelbook.storage.boto3.client")
    def test_upload_and_delete(self, mock_client_factory):
        s3 = mock_client_factory.return_value
        storage = self._client()

        url = storage.upload_bytes("travel_book/a.jpg", b"data", "image/jpeg")
        self.assertEqual(
            url, "https://photos-123.cos.ap-guangzhou.myqcloud.com/travel_book/a.jpg"
        )
        s3.put_object.assert_called_once_with(
            Bucket="photos-123",
            Key="travel_book/a.jpg",
            Body=b"data",
            ContentType="image/jpeg",
        )
        self.assertEqual(storage.path_for_url(url), "travel_book/a.jpg")

        storage.delete("travel_book/a.jpg")
        s3.delete_object.assert_called_once_with(
            Bucket="photos-123", Key="travel_book/a.jpg"
        )

    @patch("travelbook.storage.boto3.client")
    def test_provider_errors_become_storage_errors(self, mock_client_factory):
        s3 = mock_client_factory.return_value
        s3.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject"
        )
        storage = self._client()
        with self.assertRaises(StorageError):
            storage.delete("travel_book/a.jpg")

    @patch("travelbook.storage.boto3.client")
    def test_public_base_url_override(self, mock_client_factory):
        storage = self._client(public_base_url="https://cdn.test/media/")
        self.assertEqual(
            storage.path_for_url("https://cdn.test/media/travel_book/a.jpg"),
            "travel_book/a.jpg",
        )
        self.assertIsNone(
            storage.path_for_url(
                "https://photos-123.cos.ap-guangzhou.myqcloud.com/travel_book/a.jpg"
            )
        )


if __name__ == "__main__":
    unittest.main()
