"""Document model definitions."""

from sqlalchemy import JSON, Column, DateTime, Index, String
from school_backend.database import Base


class Document(Base):
    """A single document, addressed by its slash-separated path."""
    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_collection_created", "collection", "created_at"),
    )

    path = Column(String, primary_key=True)
    collection = Column(String, index=True, nullable=False)  # path minus the final id segment
    doc_id = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))
