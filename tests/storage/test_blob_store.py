import io

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber

from pastebox.errors import BlobExists, BlobNotFound, DuplicateId, StorageUnavailable
from pastebox.storage.blob import BlobStore, FilesystemBlobStore, S3BlobStore


@pytest.fixture
def fs_store(tmp_path):
    return FilesystemBlobStore(tmp_path / "blobs")


def test_filesystem_store_satisfies_protocol(fs_store):
    assert isinstance(fs_store, BlobStore)


def test_filesystem_put_get_exact_content(fs_store):
    content = "-----BEGIN-----\r\nAAECAwQ=\né\U0001f512  "
    fs_store.put("pastes/abc", content)
    assert fs_store.get("pastes/abc") == content


def test_filesystem_put_overwrites(fs_store):
    fs_store.put("pastes/abc", "one")
    fs_store.put("pastes/abc", "two")
    assert fs_store.get("pastes/abc") == "two"


def test_filesystem_create_only_put_keeps_existing_blob(fs_store):
    fs_store.put("pastes/abc", "first", overwrite=False)

    with pytest.raises(BlobExists):
        fs_store.put("pastes/abc", "second", overwrite=False)

    assert fs_store.get("pastes/abc") == "first"
    assert [p.name for p in (fs_store.base_dir / "pastes").iterdir()] == ["abc"]


def test_blob_exists_is_a_duplicate_id():
    assert issubclass(BlobExists, DuplicateId)


def test_filesystem_exists(fs_store):
    assert fs_store.exists("pastes/abc") is False
    fs_store.put("pastes/abc", "x")
    assert fs_store.exists("pastes/abc") is True
    fs_store.delete("pastes/abc")
    assert fs_store.exists("pastes/abc") is False


def test_filesystem_get_missing_raises_not_found(fs_store):
    with pytest.raises(BlobNotFound):
        fs_store.get("pastes/missing")


def test_filesystem_delete_is_idempotent(fs_store):
    fs_store.put("pastes/abc", "x")
    fs_store.delete("pastes/abc")
    fs_store.delete("pastes/abc")
    with pytest.raises(BlobNotFound):
        fs_store.get("pastes/abc")


def test_filesystem_leaves_no_temp_files(fs_store):
    fs_store.put("pastes/abc", "x")
    assert [p.name for p in (fs_store.base_dir / "pastes").iterdir()] == ["abc"]


def test_filesystem_rejects_escaping_keys(fs_store):
    with pytest.raises(ValueError):
        fs_store.put("../outside", "x")


def test_filesystem_unreadable_blob_is_unavailable(fs_store):
    # a directory where the file should be makes the read fail with an OS error
    (fs_store.base_dir / "pastes" / "dir").mkdir(parents=True)
    with pytest.raises(StorageUnavailable):
        fs_store.get("pastes/dir")


@pytest.fixture
def s3():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield S3BlobStore("pastebox-test", client), stubber
        stubber.assert_no_pending_responses()


def test_s3_put_sends_utf8_text(s3):
    store, stubber = s3
    sent = {}

    def capture(params, **kwargs):
        sent.update(params)

    store.client.meta.events.register("before-parameter-build.s3.PutObject", capture)
    stubber.add_response("put_object", {})

    store.put("pastes/abc", "héllo")

    assert sent["Bucket"] == "pastebox-test"
    assert sent["Key"] == "pastes/abc"
    assert sent["Body"] == "héllo".encode("utf-8")
    assert sent["ContentType"] == "text/plain; charset=utf-8"


def test_s3_get_returns_content(s3):
    store, stubber = s3
    data = "héllo\n".encode("utf-8")
    stubber.add_response(
        "get_object",
        {"Body": StreamingBody(io.BytesIO(data), len(data))},
    )
    assert store.get("pastes/abc") == "héllo\n"


def test_s3_missing_key_raises_not_found(s3):
    store, stubber = s3
    stubber.add_client_error("get_object", service_error_code="NoSuchKey", http_status_code=404)
    with pytest.raises(BlobNotFound):
        store.get("pastes/missing")


def test_s3_access_denied_is_unavailable(s3):
    store, stubber = s3
    stubber.add_client_error("get_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageUnavailable):
        store.get("pastes/abc")


def test_s3_put_failure_is_unavailable(s3):
    store, stubber = s3
    stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
    with pytest.raises(StorageUnavailable):
        store.put("pastes/abc", "x")


def test_s3_delete(s3):
    store, stubber = s3
    stubber.add_response("delete_object", {})
    store.delete("pastes/abc")


def test_s3_create_only_put_is_conditional(s3):
    store, stubber = s3
    sent = {}

    def capture(params, **kwargs):
        sent.update(params)

    store.client.meta.events.register("before-parameter-build.s3.PutObject", capture)
    stubber.add_response("put_object", {})

    store.put("pastes/abc", "x", overwrite=False)

    assert sent["IfNoneMatch"] == "*"


def test_s3_create_only_put_on_taken_key_raises_blob_exists(s3):
    store, stubber = s3
    stubber.add_client_error("put_object", service_error_code="PreconditionFailed", http_status_code=412)
    with pytest.raises(BlobExists):
        store.put("pastes/abc", "x", overwrite=False)


def test_s3_exists(s3):
    store, stubber = s3
    stubber.add_response("head_object", {"ContentLength": 1})
    stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)

    assert store.exists("pastes/abc") is True
    assert store.exists("pastes/missing") is False


def test_s3_exists_on_access_denied_is_unavailable(s3):
    store, stubber = s3
    stubber.add_client_error("head_object", service_error_code="403", http_status_code=403)
    with pytest.raises(StorageUnavailable):
        store.exists("pastes/abc")
