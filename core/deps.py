"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from sqlmodel import Session
from fastapi import Depends

from core.cache import CacheBackend, get_cache
from core.config import Settings, get_settings
from core.db import get_engine


# Define db dependency
def get_db() -> Generator[Session, None, None]:
  with Session(get_engine()) as session:
    yield session


SessionDep: TypeAlias = Annotated[Session, Depends(get_db)]
CacheDep: TypeAlias = Annotated[CacheBackend, Depends(get_cache)]
SettingsDep: TypeAlias = Annotated[Settings, Depends(get_settings)]
