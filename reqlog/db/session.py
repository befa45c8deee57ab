from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Bulk inserts run in a worker thread.
        connect_args["check_same_thread"] = False
    # psycopg3 driver uses `postgresql+psycopg://...`
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def get_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
