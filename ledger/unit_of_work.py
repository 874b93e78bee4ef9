from contextlib import contextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError
from extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def atomic(label):
    """Commit everything done inside the block, or roll all of it back."""
    session = db.session
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Database error during {label}: {e}")
        raise
    except Exception:
        session.rollback()
        raise
