import logging

from app.db.base import Base
from app.db.session import engine
from app.models import study  # noqa: F401

logger = logging.getLogger(__name__)


def init_db():
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
