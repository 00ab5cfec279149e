#!/usr/bin/env python3
# backend/init_db.py
"""
Database initialization script.

Creates the assets and price_history tables in the configured database
(DATABASE_URL). Existing tables are left untouched.

    python backend/init_db.py
"""

import logging

from bullion.database import engine
from bullion.models import Base
from bullion.utils import setup_logging

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables defined in models."""
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    setup_logging()
    init_db()
