"""
Database models for the durable quote cache.
"""
from sqlalchemy import Column, Float, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CacheEntryRow(Base):
    """One cached quote or search result, keyed like the in-memory cache."""
    __tablename__ = "cache_entries"

    key = Column(String(200), primary_key=True)
    kind = Column(String(20), nullable=False)
    payload = Column(Text, nullable=False)
    stored_at = Column(Float, nullable=False, index=True)
    expiry_seconds = Column(Float, nullable=False)

    def __repr__(self):
        return f"<CacheEntryRow(key={self.key}, kind={self.kind}, stored_at={self.stored_at})>"
