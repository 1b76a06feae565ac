import os
from sqlmodel import SQLModel, create_engine, Session


def _default_sqlite_url() -> str:
    data_dir = "/data"
    if os.path.isdir(data_dir):
        return f"sqlite:////{os.path.join(data_dir.lstrip('/'), 'basecamp.db')}"
    return "sqlite:///basecamp.db"


DATABASE_URL = os.getenv("DATABASE_URL", _default_sqlite_url())
SQL_ECHO = os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes")
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args, echo=SQL_ECHO)


def get_session():
    """One session per request; handlers commit through ``Storage``."""
    with Session(engine) as session:
        yield session


def init_db(bind=None):
    # notifications is created with the rest even though no route writes it
    SQLModel.metadata.create_all(bind or engine)
