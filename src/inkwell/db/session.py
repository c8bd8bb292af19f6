"""Database session configuration."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from inkwell.core.errors import ConflictError, DomainError, InternalError
from inkwell.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import inkwell.models  # noqa: E402,F401

engine = create_engine(
    settings.effective_database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Run the enclosed block as one atomic unit of work.

    Commits on success. Any failure rolls back every write made in the block;
    domain errors propagate unchanged, persistence errors are translated so that
    no raw SQLAlchemy exception escapes the core.
    """
    try:
        yield session
        session.commit()
    except DomainError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Constraint violation, transaction rolled back: %s", exc.orig)
        raise ConflictError("Write conflicts with existing data") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Persistence failure, transaction rolled back", exc_info=True)
        raise InternalError("Persistence failure") from exc
    except Exception:
        session.rollback()
        raise


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)


def expire_loaded(session: Session, model: type, *attrs: str) -> None:
    """Expire every loaded instance of ``model`` after a bulk statement.

    Bulk UPDATE/DELETE run with ``synchronize_session=False`` bypass the
    identity map, so loaded rows would otherwise keep their old values.
    """
    for instance in list(session.identity_map.values()):
        if isinstance(instance, model):
            session.expire(instance, list(attrs) or None)
