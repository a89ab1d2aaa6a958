from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from pastebox.database import Base


class Paste(Base):
    __tablename__ = "pastes"

    id = Column(String(12), primary_key=True)
    title = Column(String(255), nullable=True)
    language = Column(String(50), default="text", nullable=False)
    is_encrypted = Column(Boolean, default=False, nullable=False)
    # opaque client-side parameters, present iff is_encrypted
    encryption_iv = Column(String(64), nullable=True)
    encryption_salt = Column(String(64), nullable=True)
    burn_after = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    view_count = Column(Integer, default=0, nullable=False)
    size_bytes = Column(Integer, nullable=False)
    content_key = Column(String(255), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    ip_hash = Column(String(64), nullable=True)
