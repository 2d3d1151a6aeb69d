"""Documents router — registry, uploads, clearance-aware access."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.dependencies import require_module_access
from sirtis.auth.models import User
from sirtis.common.constants import AccessLevel, DocumentLevel, Module
from sirtis.common.utils import request_meta
from sirtis.database import get_db
from sirtis.documents.schemas import DocumentCreate, DocumentUpdate
from sirtis.documents.service import DocumentService, to_response

router = APIRouter(prefix="", tags=["documents"])

_docs_view = require_module_access(Module.documents, AccessLevel.view)
_docs_edit = require_module_access(Module.documents, AccessLevel.edit)


@router.get("")
async def list_documents(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_docs_view),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Search filename or description"),
):
    documents = await DocumentService.list_documents(
        db, current_user, request.state.user_role, category=category, search=search,
    )
    return {"data": [d.model_dump(mode="json") for d in documents]}


@router.post("", status_code=201)
async def create_document(
    body: DocumentCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_docs_edit),
):
    document = await DocumentService.create_document(
        db, body, current_user, **request_meta(request),
    )
    return {
        "data": to_response(document, current_user, request.state.user_role).model_dump(mode="json"),
        "message": "Document registered successfully.",
    }


# ── POST /upload — multipart ───────────────────────────────────────
# NOTE: defined before /{document_id} routes.

@router.post("/upload", status_code=201)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    access_level: DocumentLevel = Form(DocumentLevel.internal),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_docs_edit),
):
    stored = await DocumentService.store_upload(file)
    try:
        document = await DocumentService.create_document(
            db,
            DocumentCreate(
                **stored,
                category=category,
                description=description,
                access_level=access_level,
            ),
            current_user,
            **request_meta(request),
        )
    except Exception:
        await DocumentService.remove_stored_file(stored["path"])
        raise
    return {
        "data": to_response(document, current_user, request.state.user_role).model_dump(mode="json"),
        "message": "File uploaded successfully.",
    }


@router.get("/{document_id}")
async def get_document(
    document_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_docs_view),
):
    role = request.state.user_role
    document = await DocumentService.get_document(db, document_id, current_user, role)
    return {"data": to_response(document, current_user, role).model_dump(mode="json")}


@router.put("/{document_id}")
async def update_document(
    document_id: uuid.UUID,
    body: DocumentUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_docs_view),
):
    role = request.state.user_role
    document = await DocumentService.update_document(
        db,
        document_id,
        body.model_dump(exclude_unset=True),
        current_user,
        role,
        **request_meta(request),
    )
    return {
        "data": to_response(document, current_user, role).model_dump(mode="json"),
        "message": "Document updated successfully.",
    }


@router.delete("/{document_id}")
async def delete_document(
    document_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(_docs_view),
):
    await DocumentService.delete_document(
        db, document_id, current_user, request.state.user_role, **request_meta(request),
    )
    return {"data": None, "message": "Document deleted successfully."}
