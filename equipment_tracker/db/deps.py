from collections.abc import Generator

from .session import SessionLocalTracker


def get_tracker_db() -> Generator:
    db = SessionLocalTracker()
    try:
        yield db
    finally:
        db.close()
