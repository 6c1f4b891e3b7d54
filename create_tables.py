#!/usr/bin/env python3
"""
Create the check-in tables directly using SQLAlchemy (local development only;
use `alembic upgrade head` everywhere else)
"""
import logging
import sys

from app.core.config import settings
from app.db.database import init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_tables() -> bool:
    """Create events, participants and checkins tables"""
    if settings.is_production:
        logger.error("Refusing to create tables in production; run the migrations instead")
        return False

    logger.info(f"Creating database tables on {settings.DATABASE_URL.split('@')[-1]}...")
    init_db()
    logger.info("✅ Tables created successfully!")
    return True


if __name__ == "__main__":
    sys.exit(0 if create_tables() else 1)
