"""
Database migration script.
Creates tables: profiles, universities, user_shortlisted_universities,
user_locked_universities, tasks, chat_messages, stage_events
"""

import logging

from models import Base
from database import engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def create_tables():
    """Create all tables defined in models."""
    Base.metadata.create_all(bind=engine)
    logger.info(f"✅ Tables created successfully: {sorted(Base.metadata.tables)}")

if __name__ == "__main__":
    create_tables()
