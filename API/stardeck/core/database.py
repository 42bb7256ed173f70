# stardeck/core/database.py
from databases import Database
from sqlalchemy import create_engine
from stardeck.core.config import settings
from stardeck.models.db import Base

database = Database(settings.DATABASE_URL)


def create_tables() -> None:
    """Create the audit tables if they don't exist (synchronous)."""
    url = settings.sync_database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args)
    Base.metadata.create_all(engine)
    engine.dispose()
