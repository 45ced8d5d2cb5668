from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
from typing import List
import logging

from core.exceptions import PoolEngineException, ConflictError, StorageError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./elimination_pool.db"
    log_level: str = "INFO"
    default_operator_id: str = "default"
    cors_origins: List[str] = ["*"]

    # Round lifecycle policies
    auto_advance: bool = True
    rollover_round_strategy: str = "reinstate"
    unresolved_pick_policy: str = "discard"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite needs check_same_thread=False because FastAPI serves sync endpoints
# from a thread pool and a session may be used across threads.
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency: yields a database session.

    The session is always closed when the request finishes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator: makes a unit of database work atomic.

    Usage:
        @transactional
        def some_business_logic(db: Session, ...):
            # every DB operation runs inside one transaction
            pool = Pool(...)
            db.add(pool)
            # no manual commit, the decorator handles it

    On error:
        - the transaction is rolled back
        - engine exceptions are re-raised unchanged
        - IntegrityError becomes ConflictError (e.g. a racing duplicate round)
        - any other SQLAlchemyError becomes a retryable StorageError

    Notes:
        - the first argument must be db: Session (or pass db=...)
        - do not commit inside the wrapped function
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except PoolEngineException:
            db.rollback()
            raise
        except IntegrityError as e:
            logger.warning(f"Integrity conflict in {func.__name__}: {e.orig}")
            db.rollback()
            raise ConflictError(f"Concurrent modification detected in {func.__name__}") from e
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise StorageError(f"Storage failure in {func.__name__}, safe to retry") from e
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
