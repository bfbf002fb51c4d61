from fastapi import APIRouter
from app.api.v1.endpoints import admin_rag, chat, documents, files, llm_logs

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

# Include document routes at /organizations/{organization_id}/documents
# Note: Documents are nested under organizations
api_router.include_router(
    documents.router,
    prefix="/organizations/{organization_id}/documents"
)

# Back-office routes
api_router.include_router(
    admin_rag.router,
    prefix="/admin/rag"
)

api_router.include_router(
    llm_logs.router,
    prefix="/admin/llm-logs"
)


# ============================================================
# Unversioned /api Router
# ============================================================
# URLs the browser follows directly (citation links, local file server)
# and the chat stream the web client posts to.

public_router = APIRouter()

public_router.include_router(files.router)
public_router.include_router(chat.router)
