"""
RAG Admin Schemas

Shapes returned by the reconciliation endpoints and the per-organization
generation settings.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """
    Derived consistency between local rows and the remote index.

    Never persisted: always recomputed on read.
    """
    SYNCED = "synced"
    PENDING = "pending"
    ORPHANED = "orphaned"
    MISMATCH = "mismatch"


class OrganizationRef(BaseModel):
    id: UUID
    name: str
    slug: str


class StoreSummary(BaseModel):
    """A remote store enriched with local bookkeeping (count-level check)."""
    name: str = Field(..., description="Remote store resource name")
    display_name: Optional[str] = Field(None, description="Remote store display name")
    document_count: int = Field(..., ge=0, description="Active documents reported by the remote index")
    local_count: int = Field(..., ge=0, description="Local documents pointing at this store")
    sync_status: SyncStatus = Field(..., description="'synced' iff both counts match, else 'mismatch'")
    organization: OrganizationRef


class StoreListResponse(BaseModel):
    stores: List[StoreSummary]


class StoreDocument(BaseModel):
    """
    One row of the identity-level comparison.

    For documents that exist only remotely, `id` is the remote resource
    name and `organization` is None.
    """
    id: str = Field(..., description="Local document id, or remote resource name for orphaned-remote entries")
    display_name: Optional[str] = None
    document_resource_name: Optional[str] = None
    status: Optional[str] = Field(None, description="Local indexing status; None for remote-only entries")
    sync_status: SyncStatus
    size_bytes: Optional[int] = None
    created_at: Optional[datetime] = None
    organization: Optional[OrganizationRef] = None
    remote_only: bool = Field(False, description="True when no local row references this remote document")


class StoreDocumentsResponse(BaseModel):
    store_name: str
    documents: List[StoreDocument]


class DeleteDocumentsResponse(BaseModel):
    deleted_count: int = Field(..., ge=0)
    failed_count: int = Field(0, ge=0)
    message: str


class DeleteStoreResponse(BaseModel):
    success: bool
    message: str


class RagSettingsResponse(BaseModel):
    organization_id: UUID
    system_prompt: Optional[str] = None
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None

    class Config:
        from_attributes = True


class RagSettingsUpdate(BaseModel):
    """
    Update payload for per-organization generation settings.

    Every field is optional; an explicit null clears the override.
    Ranges follow the Gemini API limits for gemini-2.5-flash.
    """
    system_prompt: Optional[str] = Field(
        None,
        max_length=10000,
        description="System instruction prepended to every chat"
    )
    max_output_tokens: Optional[int] = Field(None, ge=1, le=65535)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(None, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(None, ge=1, le=100)
