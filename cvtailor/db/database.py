# cvtailor\db\database.py

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from cvtailor.db.models import Base # Import Base from models


def build_engine(database_url: str) -> Engine:
    """Creates the SQLAlchemy engine for the given URL."""
    # check_same_thread is needed only for SQLite, remove for other DBs like PostgreSQL
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Pipelines write from worker threads, not the thread that opened the connection
        connect_args["check_same_thread"] = False

    return create_engine(database_url, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False keeps returned records readable after the session closes
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Creates missing tables."""
    Base.metadata.create_all(bind=engine)
