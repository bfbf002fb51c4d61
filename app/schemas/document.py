"""
Document Schemas
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID
from enum import Enum

from pydantic import BaseModel, Field, computed_field


# ============================================================
# ENUMS - Typed Constants
# ============================================================
class DocumentStatus(str, Enum):
    """
    Document indexing status.

    Legal transitions are in_progress → ready and in_progress → error.
    A terminal document is never reopened; it can only be deleted.
    """
    IN_PROGRESS = "in_progress"  # Bytes stored, remote indexing not finished
    READY = "ready"              # Remote document exists and is searchable
    ERROR = "error"              # Remote upload or indexing failed


# ============================================================
# RESPONSE SCHEMAS - What API Returns to Clients
# ============================================================

class DocumentResponse(BaseModel):
    """
    Document data returned to API clients.

    Used by:
    - POST /organizations/{id}/documents (after upload)
    - GET /organizations/{id}/documents (list, each item)
    """
    id: UUID = Field(
        ...,
        description="Unique document identifier"
    )
    organization_id: UUID = Field(
        ...,
        description="ID of the owning organization"
    )
    user_id: Optional[UUID] = Field(
        None,
        description="ID of the uploader"
    )
    display_name: str = Field(
        ...,
        description="Original filename uploaded by user",
        examples=["Quarterly Report.pdf"]
    )
    mime_type: str = Field(
        ...,
        description="MIME type of the stored file",
        examples=["application/pdf"]
    )
    size_bytes: int = Field(
        ...,
        description="File size in bytes",
        examples=[1048576]
    )
    status: DocumentStatus = Field(
        ...,
        description="Current indexing status",
        examples=["ready"]
    )
    file_search_store_name: Optional[str] = Field(
        None,
        description="Remote store holding the indexed document"
    )
    created_at: datetime = Field(
        ...,
        description="When document was uploaded"
    )
    updated_at: datetime = Field(
        ...,
        description="When document was last changed"
    )

    @computed_field
    @property
    def is_ready(self) -> bool:
        """Whether the document can be cited by chat."""
        return self.status == DocumentStatus.READY

    class Config:
        """Pydantic configuration."""
        from_attributes = True  # Allows creating from SQLAlchemy model


class DocumentListResponse(BaseModel):
    """
    Response for listing documents with pagination metadata.
    """
    documents: List[DocumentResponse] = Field(
        ...,
        description="List of documents"
    )
    total: int = Field(
        ...,
        ge=0,
        description="Total count of matching documents (for pagination)"
    )
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)

    @computed_field
    @property
    def has_more(self) -> bool:
        """Whether there are more documents beyond this page."""
        return self.offset + len(self.documents) < self.total


class DocumentUploadResponse(BaseModel):
    """
    Response returned immediately after file upload.

    This is returned BEFORE indexing completes; the document
    status is 'in_progress' until the background job finishes.
    """
    document: DocumentResponse = Field(
        ...,
        description="The uploaded document (status will be 'in_progress')"
    )
    message: str = Field(
        default="Document uploaded successfully. Indexing started.",
        description="Human-readable status message"
    )


class DownloadUrlResponse(BaseModel):
    url: str = Field(..., description="Time-limited URL for the stored file")
    expires_in: int = Field(..., description="Seconds until the URL expires")


# ============================================================
# VALIDATION SCHEMAS
# ============================================================

class FileValidationResult(BaseModel):
    """
    Result of file validation.

    Used internally to pass validation results between functions.
    """
    is_valid: bool = Field(
        ...,
        description="Whether the file passed all validation"
    )
    mime_type: Optional[str] = Field(
        None,
        description="Detected MIME type"
    )
    file_size: int = Field(
        ...,
        description="File size in bytes"
    )
    errors: List[str] = Field(
        default_factory=list,
        description="List of validation errors"
    )

    @property
    def error_message(self) -> Optional[str]:
        """Combined error message if validation failed."""
        if self.is_valid:
            return None
        return "; ".join(self.errors)


# ============================================================
# QUERY SCHEMAS - For Filtering/Paging
# ============================================================

class DocumentQueryParams(BaseModel):
    """
    Query parameters for listing documents.

    GET /organizations/123/documents?search=report&limit=10&offset=0
    """
    search: Optional[str] = Field(
        None,
        max_length=255,
        description="Case-insensitive substring match on display name"
    )
    limit: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Maximum documents to return"
    )
    offset: int = Field(
        default=0,
        ge=0,
        description="Number of documents to skip"
    )
