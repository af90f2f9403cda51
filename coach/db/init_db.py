import logging

from coach.db.session import engine
from coach.db.base import Base
import coach.db.models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)


def init_db(bind=None):
    """Create any missing tables."""
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables ensured")
