"""
Services for the Files API

FileStorageService keeps the record store and the cache tier coherent:

- store:  persist, then evict the new id (no pre-population)
- get:    cache-aside; misses are read from the store and cached,
          absent records are never cached
- list:   always read from the store
- update: read-modify-write against the store, then write-through
          to the cache
- delete: delete from the store, then leave a tombstone in the cache

Cache writes carry the record version and only replace an older entry.
A reader that loaded a record before a concurrent update or delete
committed therefore cannot put its copy back over the newer entry or
the tombstone.

A cache failure never fails an operation; it is logged and treated as a
miss. A store failure always propagates, and when a write fails the
cache is left alone.
"""

import logging
import uuid

from api.files.exceptions import (
    InvalidInput,
    NotCreated,
    NotFound,
    PersistFailed,
    VersionConflict,
)
from api.files.models import MAX_NAME_LENGTH, FileRecord, from_cache_value, to_cache_value
from api.files.repository import FileRecordRepository
from core.cache import CacheBackend, CacheUnavailable, cache_key
from core.utils import clean_filename, utcnow

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "file"


def _validate(
    name: str | None, content_type: str | None, data: bytes | None
) -> tuple[str, str]:
    """Check the inputs of a write and return the sanitized name and content type"""
    clean_name = clean_filename(name)
    if not clean_name:
        raise InvalidInput("File name must not be empty")
    if len(clean_name) > MAX_NAME_LENGTH:
        raise InvalidInput(f"File name must be at most {MAX_NAME_LENGTH} characters")
    if not content_type or not content_type.strip():
        raise InvalidInput("Content type must not be empty")
    content_type = content_type.strip()
    if len(content_type) > MAX_NAME_LENGTH:
        raise InvalidInput(f"Content type must be at most {MAX_NAME_LENGTH} characters")
    if data is None:
        raise InvalidInput("File content must be present")
    return clean_name, content_type


class FileStorageService:
    """
    Stores, reads, updates and deletes files.

    Holds no state of its own beyond references to the shared record
    store and cache, so one instance per request is fine.
    """

    def __init__(self, repository: FileRecordRepository, cache: CacheBackend):
        self.repository = repository
        self.cache = cache

    # Cache helpers. Failures are absorbed here and nowhere else.

    def _cache_get(self, file_id: uuid.UUID) -> FileRecord | None:
        key = cache_key(CACHE_NAMESPACE, file_id)
        try:
            value = self.cache.get(key)
        except CacheUnavailable as e:
            logger.warning("Cache read failed, falling back to store: %s", e)
            return None
        if value is None:
            logger.debug("Cache miss: %s", key)
            return None
        try:
            record = from_cache_value(value)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Dropping unreadable cache entry %s: %s", key, e)
            self._cache_evict(file_id)
            return None
        logger.debug("Cache hit: %s", key)
        return record

    def _cache_put(self, record: FileRecord) -> None:
        key = cache_key(CACHE_NAMESPACE, record.id)
        try:
            stored = self.cache.put_if_newer(
                key,
                to_cache_value(record),
                record.version,
                self.cache.config.ttl_for(CACHE_NAMESPACE),
            )
        except CacheUnavailable as e:
            # An older entry may survive a failed overwrite; try to drop it
            logger.warning("Cache write failed for %s: %s", key, e)
            self._cache_evict(record.id)
            return
        if not stored:
            logger.debug("Cache already holds a newer entry for %s", key)

    def _cache_evict(self, file_id: uuid.UUID) -> None:
        key = cache_key(CACHE_NAMESPACE, file_id)
        try:
            self.cache.evict(key)
        except CacheUnavailable as e:
            logger.warning("Cache eviction failed for %s: %s", key, e)

    def _cache_tombstone(self, file_id: uuid.UUID) -> None:
        key = cache_key(CACHE_NAMESPACE, file_id)
        try:
            self.cache.tombstone(key)
        except CacheUnavailable as e:
            logger.warning("Cache tombstone failed for %s: %s", key, e)
            self._cache_evict(file_id)

    # Operations

    def store(self, name: str | None, content_type: str | None, data: bytes | None) -> FileRecord:
        """
        Persist a new file.

        Raises:
            InvalidInput: empty or over-long name after sanitizing, blank
                or over-long content type, or missing content
            NotCreated: the record store rejected the write
            StorageUnavailable: the record store could not be reached
        """
        file_name, content_type = _validate(name, content_type, data)
        now = utcnow()
        record = FileRecord(
            name=file_name,
            content_type=content_type,
            data=data,
            created_at=now,
            updated_at=now,
        )
        try:
            record = self.repository.save(record)
        except PersistFailed as e:
            logger.error("Could not store file %s: %s", file_name, e.cause or e)
            raise NotCreated(file_name, e.cause or e) from e

        self._cache_evict(record.id)
        logger.info("Stored file %s (%s, %d bytes)", record.id, record.name, record.size)
        return record

    def get_file(self, file_id: uuid.UUID) -> FileRecord:
        """
        Get a file by id, from the cache when possible.

        Raises:
            NotFound: no record with this id
            StorageUnavailable: the record store could not be reached
        """
        cached = self._cache_get(file_id)
        if cached is not None:
            return cached

        record = self.repository.find_by_id(file_id)
        if record is None:
            raise NotFound(file_id)

        self._cache_put(record)
        return record

    def list_files(self) -> list[FileRecord]:
        """
        Every stored file, oldest first. Always read from the record store.

        Raises:
            StorageUnavailable: the record store could not be reached
        """
        return self.repository.find_all()

    def update_file(
        self,
        file_id: uuid.UUID,
        name: str | None,
        content_type: str | None,
        data: bytes | None,
        expected_version: int | None = None,
    ) -> FileRecord:
        """
        Replace the name, content type and content of a file.

        The existing record is always read from the record store, never the
        cache. Without expected_version concurrent updates are last write
        wins; with it the update only applies if the stored version still
        matches.

        Raises:
            NotFound: no record with this id, or it was deleted concurrently
            InvalidInput: see store()
            VersionConflict: the stored version differs from expected_version
            PersistFailed: the record store rejected the write
            StorageUnavailable: the record store could not be reached
        """
        existing = self.repository.find_by_id(file_id)
        if existing is None:
            raise NotFound(file_id)

        file_name, content_type = _validate(name, content_type, data)
        if expected_version is not None and existing.version != expected_version:
            raise VersionConflict(file_id, expected_version, existing.version)

        try:
            record = self.repository.update(
                existing,
                name=file_name,
                content_type=content_type,
                data=data,
                updated_at=utcnow(),
                expected_version=expected_version,
            )
        except PersistFailed as e:
            logger.error("Could not update file %s: %s", file_id, e)
            raise

        self._cache_put(record)
        logger.info("Updated file %s to version %d", record.id, record.version)
        return record

    def delete_file(self, file_id: uuid.UUID) -> None:
        """
        Delete a file permanently.

        Raises:
            NotFound: no record with this id
            PersistFailed: the record store rejected the delete
            StorageUnavailable: the record store could not be reached
        """
        record = self.repository.find_by_id(file_id)
        if record is None:
            raise NotFound(file_id)

        try:
            self.repository.delete(record)
        except PersistFailed as e:
            logger.error("Could not delete file %s: %s", file_id, e)
            raise

        self._cache_tombstone(file_id)
        logger.info("Deleted file %s", file_id)
