from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from pastebox.errors import DuplicateId, StorageUnavailable
from pastebox.models.paste import Paste


@dataclass(frozen=True)
class PasteRecord:
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
    content_key: str
    ip_hash: str | None = None


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: Paste) -> PasteRecord:
    return PasteRecord(
        id=row.id,
        title=row.title,
        language=row.language,
        is_encrypted=row.is_encrypted,
        encryption_iv=row.encryption_iv,
        encryption_salt=row.encryption_salt,
        burn_after=row.burn_after,
        expires_at=_as_utc(row.expires_at),
        view_count=row.view_count,
        size_bytes=row.size_bytes,
        created_at=_as_utc(row.created_at),
        content_key=row.content_key,
        ip_hash=row.ip_hash,
    )


class MetadataStore:
    """Repository over the ``pastes`` table. Returns ``PasteRecord``s, never ORM rows."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def insert(self, record: PasteRecord) -> None:
        row = Paste(
            id=record.id,
            title=record.title,
            language=record.language,
            is_encrypted=record.is_encrypted,
            encryption_iv=record.encryption_iv,
            encryption_salt=record.encryption_salt,
            burn_after=record.burn_after,
            expires_at=record.expires_at,
            view_count=record.view_count,
            size_bytes=record.size_bytes,
            created_at=record.created_at,
            content_key=record.content_key,
            ip_hash=record.ip_hash,
        )
        try:
            with self.session_factory() as session, session.begin():
                session.add(row)
        except IntegrityError as exc:
            raise DuplicateId(record.id) from exc
        except SQLAlchemyError as exc:
            raise StorageUnavailable("Failed to insert paste metadata") from exc

    def get_by_id(self, paste_id: str) -> PasteRecord | None:
        try:
            with self.session_factory() as session:
                row = session.get(Paste, paste_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StorageUnavailable("Failed to read paste metadata") from exc

    def increment_view_count(self, paste_id: str) -> int | None:
        """Add one view in a single UPDATE and return the new count, or None if the row is gone."""
        try:
            with self.session_factory() as session, session.begin():
                result = session.execute(
                    update(Paste)
                    .where(Paste.id == paste_id)
                    .values(view_count=Paste.view_count + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    return None
                # still inside the transaction holding the row lock, so this is our own write
                return session.execute(
                    select(Paste.view_count).where(Paste.id == paste_id)
                ).scalar_one()
        except SQLAlchemyError as exc:
            raise StorageUnavailable("Failed to update view count") from exc

    def delete(self, paste_id: str) -> None:
        try:
            with self.session_factory() as session, session.begin():
                session.execute(
                    delete(Paste)
                    .where(Paste.id == paste_id)
                    .execution_options(synchronize_session=False)
                )
        except SQLAlchemyError as exc:
            raise StorageUnavailable("Failed to delete paste metadata") from exc

    def list_expired_before(self, now: datetime, limit: int, exclude=()) -> list[PasteRecord]:
        query = select(Paste).where(Paste.expires_at.is_not(None), Paste.expires_at < now)
        if exclude:
            query = query.where(Paste.id.not_in(list(exclude)))
        try:
            with self.session_factory() as session:
                rows = session.scalars(
                    query
                    .order_by(Paste.expires_at, Paste.id)
                    .limit(limit)
                ).all()
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StorageUnavailable("Failed to list expired pastes") from exc
