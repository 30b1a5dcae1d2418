"""
Record store for file records

Thin CRUD layer over the `files` table. Every write is committed before
returning; database errors are translated into the failure kinds of
api.files.exceptions:

- connection loss, pool or statement timeouts  -> StorageUnavailable
- any other rejected write (constraint, data)  -> PersistFailed
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlmodel import Session, select

from api.files.exceptions import NotFound, PersistFailed, StorageUnavailable, VersionConflict
from api.files.models import FileRecord

logger = logging.getLogger(__name__)


def _is_unavailable(exc: SQLAlchemyError) -> bool:
    """True when the error means the database could not be reached"""
    if isinstance(exc, (OperationalError, InterfaceError, PoolTimeoutError, DisconnectionError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class FileRecordRepository:
    """CRUD access to FileRecord rows through a SQLModel session"""

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, file_id: uuid.UUID) -> FileRecord | None:
        try:
            return self.session.get(FileRecord, file_id)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not read file {file_id}", e) from e

    def find_all(self) -> list[FileRecord]:
        try:
            return list(
                self.session.exec(
                    select(FileRecord).order_by(FileRecord.created_at, FileRecord.id)
                ).all()
            )
        except SQLAlchemyError as e:
            raise StorageUnavailable("Could not list files", e) from e

    def save(self, record: FileRecord) -> FileRecord:
        """Insert a new record and return it refreshed from the database"""
        try:
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
            return record
        except SQLAlchemyError as e:
            self.session.rollback()
            if _is_unavailable(e):
                raise StorageUnavailable(f"Could not save file {record.id}", e) from e
            raise PersistFailed(f"Could not save file {record.id}", e) from e

    def update(
        self,
        record: FileRecord,
        name: str,
        content_type: str,
        data: bytes,
        updated_at: datetime,
        expected_version: int | None = None,
    ) -> FileRecord:
        """
        Replace the content of an existing record and return it refreshed.

        The version is incremented by the UPDATE statement itself, so two
        concurrent updates always end up with distinct versions and the
        last one committed holds the highest.

        With expected_version the row is only written if its stored version
        still equals expected_version; otherwise VersionConflict is raised
        and nothing is changed. NotFound is raised if the row was deleted
        after it was read.
        """
        file_id = record.id
        statement = update(FileRecord).where(FileRecord.id == file_id)
        if expected_version is not None:
            statement = statement.where(FileRecord.version == expected_version)
        statement = statement.values(
            name=name,
            content_type=content_type,
            data=data,
            updated_at=updated_at,
            version=FileRecord.version + 1,
        ).execution_options(synchronize_session=False)

        try:
            result = self.session.execute(statement)
            if result.rowcount != 1:
                if expected_version is not None:
                    raise VersionConflict(file_id, expected_version)
                raise NotFound(file_id)
            self.session.commit()
            saved = self.session.get(FileRecord, file_id, populate_existing=True)
            if saved is None:
                raise NotFound(file_id)
            return saved
        except (VersionConflict, NotFound):
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            if _is_unavailable(e):
                raise StorageUnavailable(f"Could not update file {file_id}", e) from e
            raise PersistFailed(f"Could not update file {file_id}", e) from e

    def delete(self, record: FileRecord) -> None:
        try:
            self.session.delete(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            if _is_unavailable(e):
                raise StorageUnavailable(f"Could not delete file {record.id}", e) from e
            raise PersistFailed(f"Could not delete file {record.id}", e) from e
