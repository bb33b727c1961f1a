"""
Attachment endpoints.

GET    /attachments/task/{taskId}   List a task's attachments
POST   /attachments/task/{taskId}   Upload (multipart ``file``)
GET    /attachments/{id}/download   Stream the stored file
DELETE /attachments/{id}            Delete (uploader only)
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.core.storage import ObjectStore, get_object_store
from app.models.user import User
from app.services import attachments as attachment_service
from app.services.access import get_task_for_user
from kanban_shared.schemas.common import APIResponse
from kanban_shared.schemas.tasks import AttachmentRead

router = APIRouter()


@router.get("/task/{task_id}", response_model=List[AttachmentRead])
async def list_attachments_endpoint(
    task_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    task = await get_task_for_user(session, task_id, user.id)
    return await attachment_service.list_attachments(session, task)


@router.post("/task/{task_id}", response_model=AttachmentRead, status_code=201)
async def upload_attachment_endpoint(
    task_id: uuid.UUID,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    task = await get_task_for_user(session, task_id, user.id)
    attachment = await attachment_service.upload_attachment(session, store, task, file, user)
    await session.commit()
    return attachment


@router.get("/{attachment_id}/download")
async def download_attachment_endpoint(
    attachment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    attachment = await attachment_service.get_attachment_for_user(session, attachment_id, user.id)
    stored = await store.get(attachment.storage_key)
    return Response(
        content=stored.content,
        media_type=attachment.mime_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{attachment.file_name}"'},
    )


@router.delete("/{attachment_id}", response_model=APIResponse)
async def delete_attachment_endpoint(
    attachment_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    attachment = await attachment_service.get_attachment_for_user(session, attachment_id, user.id)
    await attachment_service.delete_attachment(session, store, attachment, user.id)
    await session.commit()
    return APIResponse(message="Attachment deleted successfully")
