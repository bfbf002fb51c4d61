"""
File Utilities

Helper functions for upload validation and storage key construction.
Always assume user input is malicious!
"""

import re
import time
import logging
from typing import Optional, Tuple
from uuid import UUID

import filetype

from app.core.config import settings
from app.schemas.document import FileValidationResult

logger = logging.getLogger(__name__)

# Anything outside letters, digits, dot, underscore and hyphen becomes "_"
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


# ============================================================
# MIME TYPE DETECTION
# ============================================================
def detect_mime_type(file_content: bytes, declared_type: Optional[str] = None) -> str:
    """
    Work out the MIME type of an upload.

    Magic bytes win when ``filetype`` recognises them. Text formats have no
    signature, so we fall back to the type the client declared, then to a
    UTF-8 sniff.
    """
    kind = filetype.guess(file_content)

    if kind is not None:
        logger.debug(f"Detected MIME type: {kind.mime}")
        return kind.mime

    if declared_type and declared_type != "application/octet-stream":
        return declared_type.split(";")[0].strip()

    try:
        file_content[:1024].decode("utf-8")
        logger.debug("Detected MIME type: text/plain (fallback)")
        return "text/plain"
    except (UnicodeDecodeError, ValueError):
        pass

    return "application/octet-stream"


# ============================================================
# FILENAME HANDLING
# ============================================================

def sanitize_filename(filename: str) -> str:
    """
    Replace every character outside [A-Za-z0-9._-] with "_".

    Runs are not collapsed, so the result has the same length as the input:

        sanitize_filename("my document (v2) #final!.pdf")
        # "my_document__v2___final_.pdf"
    """
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)


def build_document_key(
    organization_id: UUID | str,
    filename: str,
    timestamp_ms: Optional[int] = None
) -> Tuple[str, str]:
    """
    Build the storage key for an uploaded document.

    Returns:
        Tuple of (storage_key, storage_filename)

    Example:
        build_document_key("org-789", "report v2.pdf", 1700000000000)
        # ("documents/org-789/1700000000000-report_v2.pdf",
        #  "1700000000000-report_v2.pdf")
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    storage_filename = f"{timestamp_ms}-{sanitize_filename(filename)}"
    return f"documents/{organization_id}/{storage_filename}", storage_filename


def organization_id_from_key(key: str) -> Optional[str]:
    """
    Extract the organization id from a documents/{organization_id}/... key.

    Returns None if the key doesn't follow that layout.
    """
    parts = key.split("/")
    if len(parts) < 3 or parts[0] != "documents" or not parts[1]:
        return None
    return parts[1]


# ============================================================
# FILE VALIDATION
# ============================================================

def validate_file_size(file_size: int) -> Tuple[bool, Optional[str]]:
    """
    Validate file size against configured maximum.

    Returns:
        Tuple of (is_valid, error_message)
    """
    max_size = settings.MAX_FILE_SIZE_BYTES

    if file_size <= 0:
        return False, "File is empty"

    if file_size > max_size:
        size_mb = file_size / (1024 * 1024)
        max_mb = settings.MAX_FILE_SIZE_MB
        return False, f"File size ({size_mb:.1f} MB) exceeds maximum ({max_mb} MB)"

    return True, None


def validate_file(
    file_content: bytes,
    declared_type: Optional[str] = None
) -> FileValidationResult:
    """
    Validate an upload's size and content type.
    """
    errors = []
    file_size = len(file_content)

    size_valid, size_error = validate_file_size(file_size)
    if not size_valid:
        errors.append(size_error)

    mime_type = detect_mime_type(file_content, declared_type) if file_size else declared_type
    if mime_type not in settings.ALLOWED_MIME_TYPES:
        errors.append(f"File type '{mime_type}' is not supported")

    return FileValidationResult(
        is_valid=not errors,
        mime_type=mime_type,
        file_size=file_size,
        errors=errors,
    )
