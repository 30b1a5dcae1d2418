"""
Files dependencies for dependency injection
"""

from typing import Annotated
from fastapi import Depends

from core.deps import CacheDep, SessionDep
from api.files.repository import FileRecordRepository
from api.files.services import FileStorageService


def get_file_storage_service(session: SessionDep, cache: CacheDep) -> FileStorageService:
    """
    Build the storage service for one request: a repository bound to the
    request's session, and the process wide cache.
    """
    return FileStorageService(FileRecordRepository(session), cache)


FileStorageServiceDep = Annotated[FileStorageService, Depends(get_file_storage_service)]
