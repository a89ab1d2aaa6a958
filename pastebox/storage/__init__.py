from pastebox.storage.blob import BlobStore, FilesystemBlobStore, S3BlobStore, build_blob_store
from pastebox.storage.metadata import MetadataStore, PasteRecord

__all__ = [
    "BlobStore",
    "FilesystemBlobStore",
    "S3BlobStore",
    "build_blob_store",
    "MetadataStore",
    "PasteRecord",
]
