"""
Pytest configuration

Test database, fake remote index, local storage and an HTTP client
wired to the FastAPI app.
"""

import os
import tempfile

# Settings are read at import time, so the environment has to be in place
# before anything under app/ is imported.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="docsync-uploads-"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_URL", "http://testserver")

from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.ai.rag.file_search import FileSearchClient
from app.core.security import create_access_token
from app.db.database import Base, get_db
from app.models import Document, Organization, OrgMembership, User
from app.schemas.document import DocumentStatus
from app.storage import LocalStorage


# ==================== Database Fixtures ====================

@pytest.fixture
async def db_engine(tmp_path):
    """
    A fresh SQLite database file per test.

    A file (not :memory:) so that the request session, the streaming
    session and background jobs each get their own connection.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ==================== Collaborator Fixtures ====================

@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(base_path=str(tmp_path / "uploads"), public_url="http://testserver")


@pytest.fixture
def file_search():
    """
    FileSearchClient double.

    Every async method is an AsyncMock; tests set return values and
    side effects as needed.
    """
    return MagicMock(spec=FileSearchClient)


# ==================== Data Fixtures ====================

@pytest.fixture
def make_user(db_session):
    async def _make_user(email: str = "user@example.com", role: str = "user", **kwargs) -> User:
        user = User(email=email, name=email.split("@")[0], role=role, **kwargs)
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_organization(db_session):
    async def _make_organization(slug: str = "acme", name: Optional[str] = None) -> Organization:
        organization = Organization(name=name or slug.title(), slug=slug)
        db_session.add(organization)
        await db_session.commit()
        await db_session.refresh(organization)
        return organization

    return _make_organization


@pytest.fixture
def add_member(db_session):
    async def _add_member(organization: Organization, user: User, role: str = "member") -> OrgMembership:
        membership = OrgMembership(organization_id=organization.id, user_id=user.id, role=role)
        db_session.add(membership)
        await db_session.commit()
        await db_session.refresh(membership)
        return membership

    return _add_member


@pytest.fixture
def make_document(db_session):
    async def _make_document(
        organization: Organization,
        user: Optional[User] = None,
        display_name: str = "Q3 report.pdf",
        status: str = DocumentStatus.READY.value,
        **kwargs: Any
    ) -> Document:
        values: Dict[str, Any] = {
            "file_name": f"1700000000000-{display_name.replace(' ', '_')}",
            "mime_type": "application/pdf",
            "size_bytes": 1024,
        }
        values.update(kwargs)
        values.setdefault(
            "storage_url",
            f"documents/{organization.id}/{values['file_name']}"
        )

        document = Document(
            organization_id=organization.id,
            user_id=user.id if user else None,
            display_name=display_name,
            status=status,
            **values,
        )
        db_session.add(document)
        await db_session.commit()
        await db_session.refresh(document)
        return document

    return _make_document


@pytest.fixture
async def user(make_user) -> User:
    return await make_user("member@example.com")


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user("admin@example.com", role="admin")


@pytest.fixture
async def organization(make_organization, add_member, user) -> Organization:
    organization = await make_organization("acme", name="Acme")
    await add_member(organization, user)
    return organization


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _auth_headers


# ==================== HTTP Client ====================

@pytest.fixture
async def client(session_factory, storage, file_search):
    """
    httpx client bound to the app, with the database, storage and remote
    index swapped for the test doubles above.
    """
    from app.api.deps import get_file_search
    from app.db.database import get_session_factory
    from app.api.v1.endpoints import documents, files
    from app.main import app
    from app.services.document_service import DocumentService

    async def override_get_db():
        async with session_factory() as session:
            yield session

    def override_document_service(db: AsyncSession = Depends(get_db)) -> DocumentService:
        return DocumentService(db, storage=storage, file_search=file_search)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_file_search] = lambda: file_search
    app.dependency_overrides[documents.get_document_service] = override_document_service
    app.dependency_overrides[files.get_document_service] = override_document_service

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

    app.dependency_overrides.clear()


# ==================== Pytest Configuration ====================

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Tests going through the HTTP app")
