from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone
import logging

from geotrail.config import DATABASE_URL

# Get logger
logger = logging.getLogger(__name__)

Base = declarative_base()

def _utcnow():
    return datetime.now(timezone.utc)

# Define the persistent geocode cache table: one row per namespaced city key
class GeocodeCacheDB(Base):
    __tablename__ = "geocode_cache"
    key = Column(String, primary_key=True, index=True)
    value = Column(Text, nullable=False)  # JSON {timestamp, expiresAt, data}
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

def build_engine(url=DATABASE_URL):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)

engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def create_tables(bind=None):
    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created (if they didn't exist previously).")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
