from sqlalchemy import Column, Integer, Float, ForeignKey, Text, Uuid
from .base import BaseModel

class RagSettings(BaseModel):
    """Per-organization generation overrides for chat. NULL means provider default."""
    __tablename__ = "rag_settings"

    organization_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    system_prompt = Column(Text, nullable=True)
    max_output_tokens = Column(Integer, nullable=True)
    temperature = Column(Float, nullable=True)
    top_p = Column(Float, nullable=True)
    top_k = Column(Integer, nullable=True)
