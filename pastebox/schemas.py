from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PasteCreate(_CamelModel):
    # size and format limits are enforced by PasteService so every caller gets the same rules
    content: str
    title: str | None = None
    language: str = "text"
    is_encrypted: bool = False
    encryption_iv: str | None = None
    encryption_salt: str | None = None
    expires_in: str = "never"
    burn_after: bool = False

    # bot traps filled in by the web form, never stored
    honeypot: str | None = Field(default=None, alias="_honeypot")
    rendered_at: float | None = Field(default=None, alias="_timestamp")


class PasteCreated(_CamelModel):
    id: str


class PasteMetadataOut(_CamelModel):
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


class PasteOut(PasteMetadataOut):
    content: str
