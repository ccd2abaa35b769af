# entry point for scripts / ad-hoc table creation

from .session import engine, SessionLocal, get_db, dispose_engine, session_scope
from repricer.db.model import *  # load every model into Base.metadata
from .base import Base


"""
    Create all tables on an empty database during development:
        python -c "from repricer.db import create_all; create_all()"
    Production uses `alembic upgrade head`.
"""
def create_all() -> None:
    Base.metadata.create_all(bind=engine)
