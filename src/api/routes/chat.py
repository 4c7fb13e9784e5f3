"""FastAPI routes for streamed multi-provider chat.

Each user has one chat session (thread lifecycle plus reconciler);
replies for a user are serialized via the session's asyncio.Lock. The
stream endpoint emits SSE frames whose data is ``{"event", "data"}`` JSON:

    token  {"text": "..."}                 one text delta
    done   {"thread_id": "...", "message_count": n}
    error  {"type": "...", "message": "...", "retryable": bool}

Endpoints:
    GET  /chat/providers                    — Provider catalogue + selection
    POST /chat/sessions/{user_id}/thread    — Active thread (auto-created)
    POST /chat/{thread_id}/stream           — SSE stream of one reply
"""

import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException
from sse_starlette.sse import EventSourceResponse

from src.api.dependencies import get_provider_store, get_session_manager
from src.api.schemas import ChatStreamBody, ModelSummary, ProvidersResponse, ProviderSummary
from src.errors.classifier import classify_agent_error, log_agent_error
from src.errors.domain import NotFoundError, ValidationError
from src.services.agent_session_manager import AgentSessionManager, ChatSession
from src.services.chat_models import ChatThreadInfo
from src.services.chat_providers import PROVIDERS, ProviderConfig, get_provider_by_id
from src.services.provider_settings import ProviderSettingsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _frame(event: str, data: dict) -> dict:
    return {"data": json.dumps({"event": event, "data": data})}


def resolve_provider_config(body: ChatStreamBody, store: ProviderSettingsStore) -> ProviderConfig:
    """Combine request overrides with the saved selection and keychain.

    Raises:
        ValidationError: Unknown provider, nothing selected, or no API key.
    """
    state = store.state
    provider_id = body.provider or state.selected_provider
    if not provider_id:
        raise ValidationError("No provider selected")
    provider = get_provider_by_id(provider_id)
    if provider is None:
        raise ValidationError(f"Unsupported provider: {provider_id}")
    model = body.model
    if not model:
        model = state.selected_model if provider_id == state.selected_provider else ""
    if not model and provider.models:
        model = provider.models[0].id
    api_key = body.api_key or store.get_api_key(provider_id)
    if not api_key:
        raise ValidationError(f"Provider {provider_id} is not configured")
    return ProviderConfig(provider=provider_id, model=model, api_key=api_key)


@router.get("/providers", response_model=ProvidersResponse)
def list_providers(store: ProviderSettingsStore = Depends(get_provider_store)) -> ProvidersResponse:
    state = store.state
    return ProvidersResponse(
        providers=[
            ProviderSummary(
                id=p.id.value,
                name=p.name,
                description=p.description,
                configured=state.is_provider_configured(p.id.value),
                models=[
                    ModelSummary(id=m.id, name=m.name, supports_vision=m.supports_vision)
                    for m in p.models
                ],
            )
            for p in PROVIDERS
        ],
        selected_provider=state.selected_provider,
        selected_model=state.selected_model,
    )


@router.post("/sessions/{user_id}/thread", response_model=ChatThreadInfo)
async def ensure_active_thread(
    user_id: str,
    manager: AgentSessionManager = Depends(get_session_manager),
) -> ChatThreadInfo:
    """Return the user's active thread, creating one when none is active.

    Raises:
        HTTPException: 409 if no provider is configured.
    """
    chat = manager.get_or_create_chat(user_id)
    async with chat.lock:
        thread = await chat.stream.lifecycle.ensure_active_thread()
    if thread is None:
        raise HTTPException(status_code=409, detail="Configure a chat provider first")
    return thread


async def _select(chat: ChatSession, thread_id: str) -> None:
    lifecycle = chat.stream.lifecycle
    current = lifecycle.current_thread
    if current is None or current.thread_id != thread_id:
        await lifecycle.select_thread(thread_id)
    else:
        await lifecycle.load_current_if_needed()


async def _chat_events(
    chat: ChatSession, thread_id: str, body: ChatStreamBody, config: ProviderConfig
) -> AsyncGenerator[dict, None]:
    async with chat.lock:
        try:
            await _select(chat, thread_id)
            async for delta in chat.stream.stream_reply(body.content, config, body.attachments):
                yield _frame("token", {"text": delta})
            yield _frame(
                "done",
                {"thread_id": thread_id, "message_count": len(chat.stream.lifecycle.messages)},
            )
        except Exception as e:
            error = classify_agent_error(e, "stream the reply")
            log_agent_error(error, "chat_stream", chat.user_id)
            yield _frame(
                "error",
                {
                    "type": error.type.value,
                    "message": error.message,
                    "retryable": error.retryable,
                },
            )


@router.post("/{thread_id}/stream")
async def stream_chat(
    thread_id: str,
    body: ChatStreamBody,
    manager: AgentSessionManager = Depends(get_session_manager),
    store: ProviderSettingsStore = Depends(get_provider_store),
) -> EventSourceResponse:
    """Stream one assistant reply for ``thread_id`` as SSE.

    Raises:
        HTTPException: 400 for provider/config problems, 404 if the thread
            does not belong to the user.
    """
    try:
        config = resolve_provider_config(body, store)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    chat = manager.get_or_create_chat(body.user_id)
    async with chat.lock:
        try:
            await _select(chat, thread_id)
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

    return EventSourceResponse(
        _chat_events(chat, thread_id, body, config),
        media_type="text/event-stream",
    )
