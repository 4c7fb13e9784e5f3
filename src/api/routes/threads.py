"""FastAPI routes for chat threads and their persisted messages.

Endpoints:
    GET    /threads?user_id=...          — List a user's threads
    POST   /threads                      — Create the next sequential thread
    GET    /threads/{id}                 — Get one thread
    PATCH  /threads/{id}                 — Rename
    DELETE /threads/{id}                 — Delete with its messages
    GET    /threads/{id}/messages        — Messages in creation order
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from src.api.schemas import CreateThreadBody, RenameThreadBody
from src.db.connection import get_db
from src.errors.domain import NotFoundError
from src.services.chat_models import ChatThreadInfo, ChatTurn, CreateThreadRequest
from src.services.chat_persistence_service import ChatPersistenceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("", response_model=list[ChatThreadInfo])
def list_threads(
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
) -> list[ChatThreadInfo]:
    """List threads, most recently updated first."""
    return ChatPersistenceService(db).list_threads(user_id)


@router.post("", response_model=ChatThreadInfo, status_code=201)
def create_thread(body: CreateThreadBody, db: Session = Depends(get_db)) -> ChatThreadInfo:
    """Create a thread with id ``{user_id}-{n}`` and default title ``Chat {n}``."""
    return ChatPersistenceService(db).create_thread(
        CreateThreadRequest(user_id=body.user_id, title=body.title)
    )


@router.get("/{thread_id}", response_model=ChatThreadInfo)
def get_thread(thread_id: str, db: Session = Depends(get_db)) -> ChatThreadInfo:
    thread = ChatPersistenceService(db).get_thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail="Thread not found")
    return thread


@router.patch("/{thread_id}", response_model=ChatThreadInfo)
def rename_thread(
    thread_id: str, body: RenameThreadBody, db: Session = Depends(get_db)
) -> ChatThreadInfo:
    """Rename a thread.

    Raises:
        HTTPException: 404 if the thread does not exist.
    """
    try:
        return ChatPersistenceService(db).update_thread_title(thread_id, body.title)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.delete("/{thread_id}", status_code=204)
def delete_thread(thread_id: str, db: Session = Depends(get_db)) -> Response:
    """Delete a thread and its messages.

    Raises:
        HTTPException: 404 if the thread does not exist.
    """
    if not ChatPersistenceService(db).delete_thread(thread_id):
        raise HTTPException(status_code=404, detail="Thread not found")
    return Response(status_code=204)


@router.get("/{thread_id}/messages", response_model=list[ChatTurn])
def list_thread_messages(thread_id: str, db: Session = Depends(get_db)) -> list[ChatTurn]:
    svc = ChatPersistenceService(db)
    if svc.get_thread(thread_id) is None:
        raise HTTPException(status_code=404, detail="Thread not found")
    return svc.list_messages(thread_id)
