"""Unit tests for ObjectStorage against a mocked S3 client."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from services.object_storage import ObjectStorage, StorageError


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3_client():
    client = MagicMock()
    client.generate_presigned_url.return_value = "https://s3.test/bucket/key?X-Amz-Signature=abc"
    return client


@pytest.fixture
def storage(s3_client):
    return ObjectStorage(endpoint_url="https://s3.test", client=s3_client)


@pytest.mark.unit
class TestSignedUrls:
    """Signing probes the object before presigning."""

    def test_signs_existing_object(self, storage, s3_client):
        url = storage.create_signed_url("generated-reels", "u/r.mp4", expires_in=600)

        assert url.startswith("https://s3.test/")
        s3_client.head_object.assert_called_once_with(Bucket="generated-reels", Key="u/r.mp4")
        s3_client.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "generated-reels", "Key": "u/r.mp4"},
            ExpiresIn=600,
        )

    def test_missing_object_raises(self, storage, s3_client):
        s3_client.head_object.side_effect = _client_error("404")

        with pytest.raises(StorageError, match="not found"):
            storage.create_signed_url("media", "photos/missing.jpg")

        s3_client.generate_presigned_url.assert_not_called()

    def test_probe_failure_raises(self, storage, s3_client):
        s3_client.head_object.side_effect = _client_error("AccessDenied")

        with pytest.raises(StorageError):
            storage.create_signed_url("media", "photos/a.jpg")


@pytest.mark.unit
class TestUploads:
    def test_upload_sets_content_type(self, storage, s3_client):
        s3_client.head_object.side_effect = _client_error("404")

        key = storage.upload_bytes("audio", "u/r-1.mp3", b"ID3data")

        assert key == "u/r-1.mp3"
        args, kwargs = s3_client.upload_fileobj.call_args
        assert args[0].read() == b"ID3data"
        assert args[1:] == ("audio", "u/r-1.mp3")
        assert kwargs["ExtraArgs"] == {"ContentType": "audio/mpeg"}

    def test_existing_key_without_upsert_raises(self, storage, s3_client):
        with pytest.raises(StorageError, match="already exists"):
            storage.upload_bytes("audio", "u/r-1.mp3", b"ID3data")

        s3_client.upload_fileobj.assert_not_called()

    def test_upsert_overwrites(self, storage, s3_client):
        storage.upload_bytes("audio", "u/r-1.mp3", b"ID3data", upsert=True)

        s3_client.head_object.assert_not_called()
        s3_client.upload_fileobj.assert_called_once()

    def test_empty_upload_raises(self, storage, s3_client):
        with pytest.raises(StorageError, match="empty"):
            storage.upload_bytes("audio", "u/r-1.mp3", b"")


@pytest.mark.unit
def test_download_missing_object_raises(storage, s3_client):
    s3_client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")

    with pytest.raises(StorageError):
        storage.download_bytes("media", "photos/a.jpg")


@pytest.mark.unit
def test_missing_buckets(storage, s3_client):
    def head_bucket(Bucket):
        if Bucket == "audio":
            raise _client_error("404", "HeadBucket")

    s3_client.head_bucket.side_effect = head_bucket

    assert storage.missing_buckets(["media", "audio", "generated-reels"]) == ["audio"]


@pytest.mark.unit
@pytest.mark.parametrize(
    "key,expected",
    [
        ("photos/a.jpg", "image/jpeg"),
        ("u/reel.mp4", "video/mp4"),
        ("u/narration.mp3", "audio/mpeg"),
        ("blob", "application/octet-stream"),
    ],
)
def test_guess_content_type(key, expected):
    assert ObjectStorage.guess_content_type(key) == expected


@pytest.mark.unit
class TestDeletes:
    def test_deletes_existing_object(self, storage, s3_client):
        assert storage.delete_object("generated-reels", "u/r.mp4") is True

        s3_client.delete_object.assert_called_once_with(Bucket="generated-reels", Key="u/r.mp4")

    def test_missing_object_is_not_deleted(self, storage, s3_client):
        s3_client.head_object.side_effect = _client_error("404")

        assert storage.delete_object("generated-reels", "u/gone.mp4") is False
        s3_client.delete_object.assert_not_called()

    def test_delete_error_raises(self, storage, s3_client):
        s3_client.delete_object.side_effect = _client_error("AccessDenied", "DeleteObject")

        with pytest.raises(StorageError, match="Failed to delete"):
            storage.delete_object("generated-reels", "u/r.mp4")
