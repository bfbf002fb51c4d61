from sqlalchemy import Column, String, BigInteger, ForeignKey, Uuid
from .base import BaseModel

class Document(BaseModel):
    __tablename__ = "documents"

    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    display_name = Column(String(255), nullable=False)  # User's original filename
    file_name = Column(String(255), nullable=False)  # Sanitized, timestamp-prefixed storage filename
    mime_type = Column(String(255), nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    storage_url = Column(String(1000), nullable=True)  # Storage key under documents/{organization_id}/
    status = Column(String(20), default="in_progress", nullable=False, index=True)  # in_progress, ready, error

    # Set by the indexing job once the remote operation completes
    document_resource_name = Column(String(500), nullable=True, index=True)
    file_search_store_name = Column(String(500), nullable=True, index=True)
