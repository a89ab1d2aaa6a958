import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from pastebox.config import Settings
from pastebox.errors import BlobExists, BlobNotFound, StorageUnavailable


@runtime_checkable
class BlobStore(Protocol):
    def put(self, key: str, content: str, overwrite: bool = True) -> None:
        ...

    def get(self, key: str) -> str:
        ...

    def exists(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> None:
        ...


class FilesystemBlobStore:
    """One file per key under ``base_dir``; ``pastes/abc`` -> ``base_dir/pastes/abc``."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if self.base_dir not in path.parents:
            raise ValueError(f"Blob key escapes storage root: {key!r}")
        return path

    def put(self, key: str, content: str, overwrite: bool = True) -> None:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # write-then-rename so a reader never sees a half written blob
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(content.encode("utf-8"))
                if overwrite:
                    os.replace(tmp, path)
                else:
                    # link refuses an existing target, replace would not
                    os.link(tmp, path)
            finally:
                Path(tmp).unlink(missing_ok=True)
        except FileExistsError:
            raise BlobExists(key)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to write blob {key}") from exc

    def get(self, key: str) -> str:
        path = self._path_for(key)
        try:
            return path.read_bytes().decode("utf-8")
        except FileNotFoundError:
            raise BlobNotFound(key)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to read blob {key}") from exc

    def exists(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            return path.is_file()
        except OSError as exc:
            raise StorageUnavailable(f"Failed to stat blob {key}") from exc

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to delete blob {key}") from exc

    def close(self) -> None:
        pass


class S3BlobStore:
    """S3 compatible object storage (AWS S3, Cloudflare R2, MinIO)."""

    _MISSING_CODES = {"NoSuchKey", "404", "NotFound"}

    def __init__(self, bucket: str, client):
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3BlobStore":
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            config=Config(
                connect_timeout=settings.storage_timeout_seconds,
                read_timeout=settings.storage_timeout_seconds,
                # retry policy belongs to the caller
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )
        return cls(settings.s3_bucket, client)

    @staticmethod
    def _error_code(exc: ClientError) -> str | None:
        return exc.response.get("Error", {}).get("Code")

    def put(self, key: str, content: str, overwrite: bool = True) -> None:
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": content.encode("utf-8"),
            "ContentType": "text/plain; charset=utf-8",
        }
        if not overwrite:
            # conditional write, the bucket rejects it with 412 when the key exists
            params["IfNoneMatch"] = "*"
        try:
            self.client.put_object(**params)
        except ClientError as exc:
            if self._error_code(exc) == "PreconditionFailed":
                raise BlobExists(key)
            raise StorageUnavailable(f"Failed to write blob {key}") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable(f"Failed to write blob {key}") from exc

    def get(self, key: str) -> str:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except ClientError as exc:
            if self._error_code(exc) in self._MISSING_CODES:
                raise BlobNotFound(key)
            raise StorageUnavailable(f"Failed to read blob {key}") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable(f"Failed to read blob {key}") from exc
        return body.decode("utf-8")

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if self._error_code(exc) in self._MISSING_CODES:
                return False
            raise StorageUnavailable(f"Failed to stat blob {key}") from exc
        except BotoCoreError as exc:
            raise StorageUnavailable(f"Failed to stat blob {key}") from exc
        return True

    def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for absent keys
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageUnavailable(f"Failed to delete blob {key}") from exc

    def close(self) -> None:
        self.client.close()


def build_blob_store(settings: Settings) -> FilesystemBlobStore | S3BlobStore:
    if settings.blob_backend == "s3":
        return S3BlobStore.from_settings(settings)
    return FilesystemBlobStore(settings.blob_dir)
