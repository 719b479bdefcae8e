"""Database helpers: engines, session factories and DB initialization.

Provides read/write session factories and an `init_db` helper that creates
tables and seeds the demo recipe catalog when the catalog is empty.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.config import get_settings
from .models import Base, Recipe

_settings = get_settings()

# Read/Write partitioning pattern
# In production, set WRITE_DATABASE_URL and READ_DATABASE_URL to different DB instances.
# For SQLite/demo this defaults to the same file but the interfaces are separated.
WRITE_DATABASE_URL = _settings.write_database_url
READ_DATABASE_URL = _settings.effective_read_database_url


def _connect_args(url: str) -> dict:
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


# Engines
write_engine = create_engine(WRITE_DATABASE_URL, connect_args=_connect_args(WRITE_DATABASE_URL))
read_engine = create_engine(READ_DATABASE_URL, connect_args=_connect_args(READ_DATABASE_URL))

# Session factories
WriteSessionLocal = sessionmaker(bind=write_engine)
ReadSessionLocal = sessionmaker(bind=read_engine)


def init_db(engine=None, session_factory=None):
    """Initialize database schema and seed the catalog.

    Creates all tables and loads the demo allergens, cross-reactivity groups,
    ingredients and recipes if no recipe exists yet.
    """
    from data.catalog_seed import ALLERGENS, CROSS_REACTIVITY_GROUPS, INGREDIENTS, RECIPES
    from data.ingest_catalog import seed_catalog

    Base.metadata.create_all(bind=engine or write_engine)
    session = (session_factory or WriteSessionLocal)()
    try:
        if session.query(Recipe).count() == 0:
            seed_catalog(session, ALLERGENS, CROSS_REACTIVITY_GROUPS, INGREDIENTS, RECIPES)
    finally:
        session.close()


# Convenience generators for dependency injection
def get_write_session():
    """Yield a write-enabled SQLAlchemy session for the request scope.

    Use this generator as a FastAPI dependency to ensure the session is
    properly closed after the request completes.
    """
    db = WriteSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_read_session():
    """Yield a read-only SQLAlchemy session for the request scope.

    Used for read endpoints where routing reads to a replica may be desired.
    """
    db = ReadSessionLocal()
    try:
        yield db
    finally:
        db.close()
