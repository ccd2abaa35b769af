# Engine/Session factory + FastAPI dependency

from __future__ import annotations
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from repricer.core.config import settings


def _engine_kwargs(url: str) -> dict:
    # sqlite (local runs, tests) has no real pool to tune
    if url.startswith("sqlite"):
        return {"future": True}
    return {
        "pool_size": 10,          # resident connections
        "max_overflow": 20,       # extra connections at peak
        "pool_pre_ping": True,    # detect dead connections before use
        "pool_recycle": 1800,     # seconds
        "echo": False,
        "future": True,
    }


# ---- Engine ----
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))


# ---- Session Factory ----
# autocommit=False, autoflush=False: the repository layer decides when to commit
SessionLocal: sessionmaker[Session] = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,  # objects stay usable after commit (fewer reloads)
    class_=Session,
    future=True,
)



'''
FastAPI dependency: one session per request
usage:
from repricer.db.session import get_db
def endpoint(db: Session = Depends(get_db)): ...
'''
def get_db() -> Generator[Session, None, None]:
    db: Session = SessionLocal()
    try:
        yield db    # commits happen explicitly in repository/service code
    finally:
        db.close()



# ---- context manager for celery tasks / scripts ----
@contextmanager
def session_scope() -> Iterator[Session]:

    db: Session = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


"""
    Release every pooled connection; called from the FastAPI shutdown hook.
"""
def dispose_engine() -> None:
    engine.dispose()
