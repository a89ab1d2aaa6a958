"""
Paste lifecycle. Content and metadata live in two stores with no
transaction spanning them: create writes the blob before the row, every
delete removes the blob before the row, and reads treat a row without a
blob as not found.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime, timedelta, timezone
from typing import Callable

from pastebox.errors import (
    BlobNotFound,
    ContentTooLarge,
    DuplicateId,
    InvalidExpiry,
    StorageUnavailable,
    ValidationFailed,
)
from pastebox.ids import content_key_for, generate_paste_id
from pastebox.logger import logger
from pastebox.storage.blob import BlobStore
from pastebox.storage.metadata import MetadataStore, PasteRecord

EXPIRY_DURATIONS: dict[str, timedelta | None] = {
    "never": None,
    "10m": timedelta(minutes=10),
    "1h": timedelta(hours=1),
    "1d": timedelta(days=1),
    "1w": timedelta(weeks=1),
    "1M": timedelta(days=30),
}

# one view for the creator's redirect after submitting, one for the recipient
BURN_VIEW_THRESHOLD = 2

MAX_TITLE_CHARS = 255
MAX_ENCRYPTION_PARAM_CHARS = 64
DEFAULT_MAX_CONTENT_CHARS = 2_000_000


@dataclass
class CreatePasteInput:
    content: str
    title: str | None = None
    language: str = "text"
    is_encrypted: bool = False
    encryption_iv: str | None = None
    encryption_salt: str | None = None
    expires_in: str = "never"
    burn_after: bool = False


@dataclass(frozen=True)
class PasteMetadata:
    id: str
    title: str | None
    language: str
    is_encrypted: bool
    encryption_iv: str | None
    encryption_salt: str | None
    burn_after: bool
    expires_at: datetime | None
    view_count: int
    size_bytes: int
    created_at: datetime

    @classmethod
    def from_record(cls, record: PasteRecord, **overrides) -> "PasteMetadata":
        values = {f.name: getattr(record, f.name) for f in fields(cls) if f.name not in overrides}
        return cls(**values, **overrides)


@dataclass(frozen=True)
class PasteView(PasteMetadata):
    content: str = ""

    @classmethod
    def from_metadata(cls, metadata: PasteMetadata, content: str) -> "PasteView":
        return cls(**asdict(metadata), content=content)


def compute_expires_at(expires_in: str, now: datetime) -> datetime | None:
    try:
        duration = EXPIRY_DURATIONS[expires_in]
    except KeyError:
        raise InvalidExpiry(f"Unknown expiry {expires_in!r}")
    return None if duration is None else now + duration


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_utf8_encodable(value: str | None) -> bool:
    # JSON allows lone surrogates such as "\ud800", UTF-8 does not
    if value is None:
        return True
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class PasteService:
    def __init__(
        self,
        metadata: MetadataStore,
        blobs: BlobStore,
        *,
        max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
        id_generator: Callable[[], str] = generate_paste_id,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.metadata = metadata
        self.blobs = blobs
        self.max_content_chars = max_content_chars
        self.id_generator = id_generator
        self.clock = clock

    def _validate(self, data: CreatePasteInput) -> CreatePasteInput:
        if not isinstance(data.content, str) or data.content == "":
            raise ValidationFailed("Content is required")
        if len(data.content) > self.max_content_chars:
            raise ContentTooLarge(
                f"Content too large (max {self.max_content_chars} characters)"
            )
        if data.title is not None and len(data.title) > MAX_TITLE_CHARS:
            raise ValidationFailed(f"Title too long (max {MAX_TITLE_CHARS} characters)")
        if data.expires_in not in EXPIRY_DURATIONS:
            raise InvalidExpiry(f"Unknown expiry {data.expires_in!r}")
        text_fields = (data.content, data.title, data.language, data.encryption_iv, data.encryption_salt)
        if not all(_is_utf8_encodable(value) for value in text_fields):
            raise ValidationFailed("Paste fields must be valid UTF-8 text")

        iv, salt = data.encryption_iv, data.encryption_salt
        if data.is_encrypted:
            if not iv or not salt:
                raise ValidationFailed("Encryption IV and salt are required for encrypted pastes")
            if len(iv) > MAX_ENCRYPTION_PARAM_CHARS or len(salt) > MAX_ENCRYPTION_PARAM_CHARS:
                raise ValidationFailed("Encryption parameters too long")
        else:
            iv = salt = None

        return CreatePasteInput(
            content=data.content,
            title=data.title or None,
            language=data.language or "text",
            is_encrypted=data.is_encrypted,
            encryption_iv=iv,
            encryption_salt=salt,
            expires_in=data.expires_in,
            burn_after=data.burn_after,
        )

    def create(self, data: CreatePasteInput, ip_hash: str | None = None) -> str:
        data = self._validate(data)
        size_bytes = len(data.content.encode("utf-8"))

        attempts = 2  # regenerate once on an id collision
        for attempt in range(1, attempts + 1):
            paste_id = self.id_generator()
            content_key = content_key_for(paste_id)
            now = self.clock()
            expires_at = compute_expires_at(data.expires_in, now)

            record = PasteRecord(
                id=paste_id,
                title=data.title,
                language=data.language,
                is_encrypted=data.is_encrypted,
                encryption_iv=data.encryption_iv,
                encryption_salt=data.encryption_salt,
                burn_after=data.burn_after,
                expires_at=expires_at,
                view_count=0,
                size_bytes=size_bytes,
                created_at=now,
                content_key=content_key,
                ip_hash=ip_hash,
            )
            try:
                # blob before row, create-only so a taken id never loses its content
                self.blobs.put(content_key, data.content, overwrite=False)
                try:
                    self.metadata.insert(record)
                except DuplicateId:
                    # the row exists without content; drop the blob we just wrote
                    self.blobs.delete(content_key)
                    raise
            except DuplicateId:
                if attempt == attempts:
                    raise
                logger.warning("Paste id collision on %s, regenerating", paste_id)
                continue

            logger.info(
                "Created paste %s size=%d expires_in=%s burn_after=%s",
                paste_id, size_bytes, data.expires_in, data.burn_after,
            )
            return paste_id

        raise DuplicateId("Failed to generate unique paste id")

    def _is_expired(self, record: PasteRecord) -> bool:
        return record.expires_at is not None and self.clock() >= record.expires_at

    def _delete(self, record: PasteRecord) -> None:
        # content first: a row without content reads as not found, the reverse would not
        self.blobs.delete(record.content_key)
        self.metadata.delete(record.id)

    def _live_record(self, paste_id: str) -> PasteRecord | None:
        record = self.metadata.get_by_id(paste_id)
        if record is None:
            return None
        if self._is_expired(record):
            logger.info("Paste %s expired, deleting", paste_id)
            self._delete(record)
            return None
        return record

    def _fetch_content(self, record: PasteRecord) -> str | None:
        try:
            return self.blobs.get(record.content_key)
        except BlobNotFound:
            logger.warning("Paste %s has metadata but no content", record.id)
            return None

    def retrieve(self, paste_id: str) -> PasteView | None:
        """Full read. Counts a view and burns the paste once the threshold is reached."""
        record = self._live_record(paste_id)
        if record is None:
            return None

        content = self._fetch_content(record)
        if content is None:
            return None

        view_count = self.metadata.increment_view_count(paste_id)
        if view_count is None:
            # deleted by a concurrent burn or sweep between our reads
            return None

        if record.burn_after and view_count >= BURN_VIEW_THRESHOLD:
            logger.info("Paste %s burned after %d views", paste_id, view_count)
            self._delete(record)

        metadata = PasteMetadata.from_record(record, view_count=view_count)
        return PasteView.from_metadata(metadata, content)

    def retrieve_metadata(self, paste_id: str) -> PasteMetadata | None:
        record = self._live_record(paste_id)
        if record is None:
            return None
        if not self.blobs.exists(record.content_key):
            logger.warning("Paste %s has metadata but no content", record.id)
            return None
        return PasteMetadata.from_record(record)

    def retrieve_raw_content(self, paste_id: str) -> str | None:
        # TODO: decide whether raw reads of burn_after pastes should count toward the burn threshold
        record = self._live_record(paste_id)
        if record is None:
            return None
        return self._fetch_content(record)

    def sweep_expired(self, batch_size: int) -> int:
        """
        Delete up to ``batch_size`` expired pastes and return how many went.

        A record that fails to delete is logged and passed over, and the
        listing continues behind it, so a few stuck rows cannot hold back
        the rest. After more than ``batch_size`` failures the call gives up
        until the next sweep.
        """
        now = self.clock()
        failed: list[str] = []
        deleted = 0
        while deleted < batch_size and len(failed) <= batch_size:
            expired = self.metadata.list_expired_before(now, batch_size - deleted, exclude=failed)
            if not expired:
                break
            for record in expired:
                try:
                    self._delete(record)
                except StorageUnavailable:
                    failed.append(record.id)
                    logger.exception("Failed to sweep paste %s", record.id)
                else:
                    deleted += 1
        if deleted or failed:
            logger.info("Swept %d expired pastes (%d failed)", deleted, len(failed))
        return deleted
