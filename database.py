from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker
from config import settings
from models import Base
import logging

# Configure logger
logger = logging.getLogger(__name__)

def get_db_connection():
    """Create and return database engine."""
    if not settings.DATABASE_URL:
        raise ValueError("DATABASE_URL environment variable not set")

    connect_args = {}
    if settings.DATABASE_URL.startswith("sqlite"):
        # FastAPI serves requests from a thread pool
        connect_args["check_same_thread"] = False
    return create_engine(settings.DATABASE_URL, connect_args=connect_args)

engine = get_db_connection()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def verify_tables_exist(bind=None):
    """Ensure required tables exist, create if missing."""
    bind = bind or engine
    inspector = inspect(bind)
    existing_tables = set(inspector.get_table_names())

    missing = [name for name in Base.metadata.tables if name not in existing_tables]
    if not missing:
        logger.info("All tables present")
        return []

    logger.info(f"Creating missing tables: {missing}")
    Base.metadata.create_all(bind=bind)
    return missing
