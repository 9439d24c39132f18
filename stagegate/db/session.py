from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stagegate.db.base import Base


def create_session_factory(database_url: str, *, create_tables: bool = True) -> sessionmaker:
    """Create a session factory bound to ``database_url``.

    Args:
        database_url: SQLAlchemy database URL
        create_tables: Create missing tables on the engine

    Returns:
        Configured sessionmaker
    """
    # Import models so they register on Base.metadata
    from stagegate.db import models  # noqa: F401

    engine = create_engine(database_url, future=True)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
