"""
Database configuration
"""
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session
from core.config import get_settings

# Create engine lazily to allow test configuration to be applied
_engine = None


def _is_in_memory_sqlite(uri: str) -> bool:
    return uri in ("sqlite://", "sqlite:///:memory:")


def get_engine():
    """
    Get or create the database engine.
    This lazy initialization allows test settings to be applied properly.
    """
    global _engine
    if _engine is None:
        uri = str(get_settings().SQLALCHEMY_DATABASE_URI)
        if _is_in_memory_sqlite(uri):
            # A single shared connection, otherwise every session
            # would see its own empty database
            _engine = create_engine(
                uri,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            _engine = create_engine(uri, echo=False, pool_pre_ping=True)
    return _engine


def reset_engine():
    """
    Reset the engine to None.
    This is useful for tests that need to switch between different settings.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def create_db_and_tables():
    """Create all tables registered on the SQLModel metadata"""
    # Import models so their tables are registered
    import api.files.models  # noqa: F401
    SQLModel.metadata.create_all(get_engine())


# Yield session
def get_session():
    with Session(get_engine()) as session:
        yield session
