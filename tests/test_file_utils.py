"""
File utility tests

Storage key construction and upload validation.
"""

from app.core.config import settings
from app.utils.file_utils import (
    build_document_key,
    detect_mime_type,
    organization_id_from_key,
    sanitize_filename,
    validate_file,
)


class TestSanitizeFilename:

    def test_unsafe_characters_replaced_one_for_one(self):
        name = "my document (v2) #final!.pdf"

        sanitized = sanitize_filename(name)

        assert sanitized == "my_document__v2___final_.pdf"
        assert len(sanitized) == len(name)

    def test_safe_name_unchanged(self):
        assert sanitize_filename("report_2024-v1.final.pdf") == "report_2024-v1.final.pdf"

    def test_non_ascii_replaced(self):
        assert sanitize_filename("résumé.pdf") == "r_sum_.pdf"


class TestBuildDocumentKey:

    def test_key_layout(self):
        key, filename = build_document_key("org-789", "my document (v2) #final!.pdf", 1700000000000)

        assert filename == "1700000000000-my_document__v2___final_.pdf"
        assert key == "documents/org-789/1700000000000-my_document__v2___final_.pdf"

    def test_defaults_to_current_time(self):
        key, filename = build_document_key("org-1", "a.txt")

        prefix, _, rest = filename.partition("-")
        assert prefix.isdigit()
        assert rest == "a.txt"
        assert key == f"documents/org-1/{filename}"


class TestOrganizationIdFromKey:

    def test_valid_key(self):
        assert organization_id_from_key("documents/org-1/123-a.pdf") == "org-1"

    def test_other_prefix(self):
        assert organization_id_from_key("avatars/org-1/123-a.pdf") is None

    def test_too_short(self):
        assert organization_id_from_key("documents/org-1") is None

    def test_empty_organization(self):
        assert organization_id_from_key("documents//a.pdf") is None


class TestValidateFile:

    def test_pdf_detected_from_magic_bytes(self):
        result = validate_file(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n", "application/octet-stream")

        assert result.is_valid
        assert result.mime_type == "application/pdf"

    def test_text_uses_declared_type(self):
        result = validate_file(b"# Notes\n\nplain markdown", "text/markdown; charset=utf-8")

        assert result.is_valid
        assert result.mime_type == "text/markdown"

    def test_text_without_declared_type(self):
        assert detect_mime_type(b"hello world") == "text/plain"

    def test_empty_file(self):
        result = validate_file(b"", "text/plain")

        assert not result.is_valid
        assert "File is empty" in result.error_message

    def test_unsupported_type(self):
        result = validate_file(b"MZ\x90\x00\x03\x00\x00\x00\x04\x00", "application/octet-stream")

        assert not result.is_valid
        assert "is not supported" in result.error_message

    def test_too_large(self, monkeypatch):
        monkeypatch.setattr(settings, "MAX_FILE_SIZE_MB", 1)

        result = validate_file(b"a" * (1024 * 1024 + 1), "text/plain")

        assert not result.is_valid
        assert "exceeds maximum" in result.error_message
