from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from expenseflow.core.config import get_settings
from expenseflow.db.base import Base

settings = get_settings()

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None) -> None:
    """Create all tables that do not exist yet."""
    # Register every model on the metadata
    import expenseflow.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
