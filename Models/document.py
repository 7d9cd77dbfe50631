# Models/document.py
from sqlalchemy import Column, String, DateTime, JSON, Index
from datetime import datetime, timezone
from .base import Base


def utcnow():
    return datetime.now(timezone.utc)


class Document(Base):
    __tablename__ = 'documents'

    # Primary identifiers: a document is addressed by its collection path and id,
    # e.g. ("users/abc123/chat_messages", "f9c1...")
    collection = Column(String, primary_key=True)
    id = Column(String, primary_key=True)

    # Body
    data = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_documents_collection', 'collection'),
    )

    def __repr__(self):
        return f"<Document {self.collection}/{self.id}>"
