"""Document service — clearance-filtered listing, uploads, owner-gated edits."""

from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Optional

import aiofiles
import aiofiles.os
from fastapi import UploadFile
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from sirtis.auth.models import User
from sirtis.common.audit import apply_changes, create_audit_entry
from sirtis.common.constants import (
    AccessLevel,
    DocumentLevel,
    Module,
    UserRole,
    can_read_level,
    has_access,
)
from sirtis.common.exceptions import BadRequestException, ForbiddenException, NotFoundException
from sirtis.common.filters import apply_filters, apply_search
from sirtis.config import settings
from sirtis.documents.models import Document
from sirtis.documents.schemas import DocumentCreate, DocumentResponse

logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
    "image/jpeg",
    "image/png",
}

UPLOAD_CHUNK_SIZE = 1024 * 1024


def readable_levels(role: UserRole) -> list[str]:
    return [level.value for level in DocumentLevel if can_read_level(role, level)]


def can_modify(document: Document, user: User, role: UserRole) -> bool:
    """Uploader, system administrators and documents=full may edit or delete."""
    return (
        document.uploaded_by == user.id
        or role == UserRole.system_administrator
        or has_access(role, Module.documents, AccessLevel.full)
    )


def to_response(document: Document, user: User, role: UserRole) -> DocumentResponse:
    item = DocumentResponse.model_validate(document)
    item.can_edit = item.can_delete = can_modify(document, user, role)
    return item


class DocumentService:

    @staticmethod
    async def list_documents(
        db: AsyncSession,
        user: User,
        role: UserRole,
        *,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[DocumentResponse]:
        query = (
            select(Document)
            .where(
                or_(
                    Document.access_level.in_(readable_levels(role)),
                    Document.uploaded_by == user.id,
                )
            )
            .order_by(Document.created_at.desc())
        )
        query = apply_filters(query, Document, {"category": category})
        query = apply_search(query, Document, search, ["filename", "original_name", "description"])
        documents = (await db.execute(query)).scalars().all()
        return [to_response(d, user, role) for d in documents]

    @staticmethod
    async def get_document(
        db: AsyncSession,
        document_id: uuid.UUID,
        user: User,
        role: UserRole,
    ) -> Document:
        document = await db.get(Document, document_id)
        if document is None:
            raise NotFoundException("Document", str(document_id))
        if document.uploaded_by != user.id and not can_read_level(role, document.level):
            raise ForbiddenException(detail="Document is above your clearance level.")
        return document

    @staticmethod
    async def create_document(
        db: AsyncSession,
        data: DocumentCreate,
        user: User,
        **meta: Any,
    ) -> Document:
        document = Document(
            **data.model_dump(exclude={"access_level"}),
            access_level=data.access_level.value,
            uploaded_by=user.id,
        )
        db.add(document)
        await db.flush()
        await create_audit_entry(
            db,
            action="CREATE",
            resource="document",
            resource_id=document.id,
            user_id=user.id,
            new_values={"filename": document.filename, "access_level": document.access_level},
            **meta,
        )
        return document

    @staticmethod
    async def store_upload(file: UploadFile) -> dict[str, Any]:
        """Stream an upload to ``UPLOAD_DIR/documents`` under a generated name.

        The size limit is enforced while reading so an oversized body is
        never held in memory; a partially written file is removed.
        """
        content_type = file.content_type
        if content_type not in ALLOWED_UPLOAD_TYPES:
            raise BadRequestException(f"File type '{content_type}' is not allowed.")
        max_size = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024

        upload_dir = os.path.join(settings.UPLOAD_DIR, "documents")
        await aiofiles.os.makedirs(upload_dir, exist_ok=True)

        # Generated name only; the client's filename never reaches the filesystem.
        original_name = file.filename
        ext = os.path.splitext(original_name or "")[1]
        safe_name = f"{uuid.uuid4().hex}{ext}"
        file_path = os.path.join(upload_dir, safe_name)

        size = 0
        try:
            async with aiofiles.open(file_path, "wb") as out:
                while True:
                    chunk = await file.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_size:
                        raise BadRequestException(
                            f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB} MB."
                        )
                    await out.write(chunk)
        except Exception:
            await DocumentService.remove_stored_file(file_path)
            raise

        logger.info("Stored upload %s (%d bytes)", safe_name, size)
        return {
            "filename": safe_name,
            "original_name": original_name or safe_name,
            "mime_type": content_type,
            "size": size,
            "path": file_path,
            "url": f"/uploads/documents/{safe_name}",
        }

    @staticmethod
    async def remove_stored_file(path: Optional[str]) -> bool:
        """Delete a file under ``UPLOAD_DIR``; paths outside it are left alone."""
        if not path or not path.startswith(settings.UPLOAD_DIR):
            return False
        if not await aiofiles.os.path.isfile(path):
            return False
        await aiofiles.os.remove(path)
        logger.info("Removed stored file %s", os.path.basename(path))
        return True

    @staticmethod
    async def update_document(
        db: AsyncSession,
        document_id: uuid.UUID,
        changes: dict[str, Any],
        user: User,
        role: UserRole,
        **meta: Any,
    ) -> Document:
        document = await DocumentService.get_document(db, document_id, user, role)
        if not can_modify(document, user, role):
            raise ForbiddenException(detail="Only the uploader or an administrator may edit this document.")

        old_values, new_values = apply_changes(document, changes)
        if new_values:
            await db.flush()
            await create_audit_entry(
                db,
                action="UPDATE",
                resource="document",
                resource_id=document.id,
                user_id=user.id,
                old_values=old_values,
                new_values=new_values,
                **meta,
            )
        return document

    @staticmethod
    async def delete_document(
        db: AsyncSession,
        document_id: uuid.UUID,
        user: User,
        role: UserRole,
        **meta: Any,
    ) -> None:
        document = await DocumentService.get_document(db, document_id, user, role)
        if not can_modify(document, user, role):
            raise ForbiddenException(detail="Only the uploader or an administrator may delete this document.")

        path, filename = document.path, document.filename
        await db.delete(document)
        await db.flush()
        await create_audit_entry(
            db,
            action="DELETE",
            resource="document",
            resource_id=document_id,
            user_id=user.id,
            old_values={"filename": filename, "path": path},
            **meta,
        )
        await DocumentService.remove_stored_file(path)
