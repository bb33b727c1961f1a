"""Attachment service: object-store upload plus the metadata row."""

from __future__ import annotations

import os
import uuid
from typing import List

import structlog
from fastapi import HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.storage import ObjectStore
from app.models.task import Attachment, Task
from app.models.user import User
from app.services.access import get_task_for_user
from app.services.activity import record_activity
from app.services.tasks import attachment_read
from kanban_shared.schemas.activity import AttachmentAddedDetails
from kanban_shared.schemas.tasks import AttachmentRead

log = structlog.get_logger()
settings = get_settings()


def storage_key_for(task_id: uuid.UUID, file_name: str) -> str:
    """``attachments/{task_id}/{uuid}.{ext}``"""
    ext = os.path.splitext(file_name)[1].lstrip(".")
    name = f"{uuid.uuid4()}.{ext}" if ext else str(uuid.uuid4())
    return f"attachments/{task_id}/{name}"


async def get_attachment_for_user(
    session: AsyncSession, attachment_id: uuid.UUID, user_id: uuid.UUID
) -> Attachment:
    attachment = await session.get(Attachment, attachment_id)
    if attachment is None:
        raise HTTPException(status_code=404, detail="Attachment not found or access denied")
    try:
        await get_task_for_user(session, attachment.task_id, user_id)
    except HTTPException:
        raise HTTPException(status_code=404, detail="Attachment not found or access denied")
    return attachment


async def list_attachments(session: AsyncSession, task: Task) -> List[AttachmentRead]:
    result = await session.execute(
        select(Attachment, User.full_name)
        .outerjoin(User, User.id == Attachment.user_id)
        .where(Attachment.task_id == task.id)
        .order_by(Attachment.created_at.desc())
    )
    return [attachment_read(a, name) for a, name in result.all()]


async def upload_attachment(
    session: AsyncSession,
    store: ObjectStore,
    task: Task,
    upload: UploadFile,
    user: User,
) -> AttachmentRead:
    if not upload.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    data = await upload.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File is too large")

    mime_type = upload.content_type or "application/octet-stream"
    key = storage_key_for(task.id, upload.filename)
    await store.put(key, data, mime_type)

    attachment = Attachment(
        task_id=task.id,
        user_id=user.id,
        file_name=upload.filename,
        storage_key=key,
        file_size=len(data),
        mime_type=mime_type,
    )
    session.add(attachment)
    await session.flush()

    await record_activity(
        session,
        project_id=task.project_id,
        task_id=task.id,
        user_id=user.id,
        details=AttachmentAddedDetails(file_name=upload.filename),
    )
    log.info("attachment.uploaded", attachment_id=str(attachment.id), task_id=str(task.id), size=len(data))
    return attachment_read(attachment, user.full_name)


async def delete_attachment(
    session: AsyncSession, store: ObjectStore, attachment: Attachment, user_id: uuid.UUID
) -> None:
    """Only the uploader may delete an attachment."""
    if attachment.user_id != user_id:
        raise HTTPException(status_code=403, detail="Only the uploader can delete this attachment")
    key = attachment.storage_key
    await session.delete(attachment)
    await session.flush()
    await store.delete(key)
    log.info("attachment.deleted", attachment_id=str(attachment.id))
