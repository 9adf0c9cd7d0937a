import logging
from contextlib import contextmanager
from typing import Iterator

from sqlmodel import SQLModel, create_engine, Session

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)


def get_session():
    with Session(engine) as session:
        yield session


def init_db():
    from . import models  # noqa: F401  registers tables on the metadata

    SQLModel.metadata.create_all(engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Run a block of ORM work as one transaction.

    Commits when the block exits normally. Any exception rolls back
    everything written inside the block and is re-raised.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
