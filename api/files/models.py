"""
Models for the Files API
"""

import base64
import json
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, LargeBinary
from sqlmodel import SQLModel, Field
from pydantic import ConfigDict

from core.utils import as_utc, utcnow

# Column length of name and content_type
MAX_NAME_LENGTH = 255


class FileRecord(SQLModel, table=True):
    """
    A stored file: metadata plus the raw bytes.

    version starts at 1 and is incremented by every update.
    Timestamps are UTC.
    """
    __tablename__ = "files"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=MAX_NAME_LENGTH, nullable=False)
    content_type: str = Field(max_length=MAX_NAME_LENGTH, nullable=False)
    data: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
    version: int = Field(default=1, nullable=False)

    model_config = ConfigDict(from_attributes=True)

    @property
    def size(self) -> int:
        return len(self.data)


def to_cache_value(record: FileRecord) -> str:
    """Serialize a record for the cache tier (JSON, payload base64 encoded)"""
    return json.dumps({
        "id": str(record.id),
        "name": record.name,
        "content_type": record.content_type,
        "data": base64.b64encode(record.data).decode("ascii"),
        "created_at": as_utc(record.created_at).isoformat(),
        "updated_at": as_utc(record.updated_at).isoformat(),
        "version": record.version,
    })


def from_cache_value(value: str) -> FileRecord:
    """Rebuild a detached record from a to_cache_value() string"""
    payload = json.loads(value)
    return FileRecord(
        id=uuid.UUID(payload["id"]),
        name=payload["name"],
        content_type=payload["content_type"],
        data=base64.b64decode(payload["data"], validate=True),
        created_at=as_utc(datetime.fromisoformat(payload["created_at"])),
        updated_at=as_utc(datetime.fromisoformat(payload["updated_at"])),
        version=payload["version"],
    )


class FilePublic(SQLModel):
    """Public file representation, without the payload"""

    id: uuid.UUID
    name: str
    content_type: str
    size: int
    url: str
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: FileRecord, url: str) -> "FilePublic":
        return cls(
            id=record.id,
            name=record.name,
            content_type=record.content_type,
            size=record.size,
            url=url,
            version=record.version,
            created_at=as_utc(record.created_at),
            updated_at=as_utc(record.updated_at),
        )
