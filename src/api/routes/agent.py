"""FastAPI routes for the conversational Drive agent.

Each conversation has its own ConversationalAgent and AgentContext. Turns
within one conversation are serialized via the session's asyncio.Lock.

Endpoints:
    POST   /agent/requests                 — Run one agent turn
    GET    /agent/conversations/{id}       — Current conversation context
    DELETE /agent/conversations/{id}       — End conversation, drop context
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from src.api.dependencies import get_session_manager
from src.api.schemas import AgentRequestBody, AgentTurnResponse, ConversationContextResponse
from src.orchestrator.models.intent import AgentRequest
from src.services.agent_session_manager import AgentSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["agent"])


@router.post("/requests", response_model=AgentTurnResponse)
async def run_agent_request(
    body: AgentRequestBody,
    manager: AgentSessionManager = Depends(get_session_manager),
) -> AgentTurnResponse:
    """Run one turn. Failures come back as a response with status ``error``.

    Args:
        body: User id, utterance, optional conversation id and context.

    Returns:
        The agent's response and the conversation id to continue with.
    """
    conversation_id = body.conversation_id or str(uuid4())
    session = manager.get_or_create_session(conversation_id)
    async with session.lock:
        response = await session.agent.process_request(
            AgentRequest(user_id=body.user_id, message=body.message, context=body.context)
        )
    logger.info(
        "Agent turn conversation=%s status=%s operations=%d",
        conversation_id,
        response.status,
        len(response.operations),
    )
    return AgentTurnResponse(conversation_id=conversation_id, **response.model_dump())


@router.get("/conversations/{conversation_id}", response_model=ConversationContextResponse)
async def get_conversation(
    conversation_id: str,
    manager: AgentSessionManager = Depends(get_session_manager),
) -> ConversationContextResponse:
    """Return a conversation's context.

    Raises:
        HTTPException: 404 if the conversation does not exist.
    """
    session = manager.get_session(conversation_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ConversationContextResponse(
        conversation_id=conversation_id, context=session.agent.get_context()
    )


@router.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    manager: AgentSessionManager = Depends(get_session_manager),
) -> Response:
    """End a conversation. Idempotent."""
    manager.remove_session(conversation_id)
    return Response(status_code=204)
