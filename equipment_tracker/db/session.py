import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


EQUIPMENT_TRACKER_DB_URL = _require_env("EQUIPMENT_TRACKER_DB_URL")

# Requests and their session teardown may run on different worker threads.
_CONNECT_ARGS = {"check_same_thread": False} if EQUIPMENT_TRACKER_DB_URL.startswith("sqlite") else {}

engine_tracker = create_engine(
    EQUIPMENT_TRACKER_DB_URL,
    connect_args=_CONNECT_ARGS,
    pool_pre_ping=True,
    future=True,
)

SessionLocalTracker = sessionmaker(
    bind=engine_tracker,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)
