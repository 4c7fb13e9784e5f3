"""Chat model providers: catalogue, configuration and streaming clients.

Providers form a closed set. ``create_chat_model`` maps a ProviderConfig
to a client and fails closed with ``UnsupportedProviderError`` for any
provider outside that set.

Anthropic goes through the official SDK. OpenAI and Mistral share an
OpenAI-compatible chat-completions client that reads the SSE stream
with httpx.
"""

import json
import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from anthropic import AsyncAnthropic
from pydantic import BaseModel, Field

from src.errors.domain import UnsupportedProviderError, ValidationError
from src.services.chat_models import FileAttachment, TranscriptMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096
OPENAI_BASE_URL = "https://api.openai.com/v1"
MISTRAL_BASE_URL = "https://api.mistral.ai/v1"


class ProviderId(str, Enum):
    openai = "openai"
    anthropic = "anthropic"
    mistral = "mistral"


_OPENAI_COMPATIBLE_URLS: dict[ProviderId, str] = {
    ProviderId.openai: OPENAI_BASE_URL,
    ProviderId.mistral: MISTRAL_BASE_URL,
}


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str = ""
    max_tokens: Optional[int] = None
    supports_vision: bool = False
    supports_function_calling: bool = False
    supports_image_generation: bool = False


class ProviderInfo(BaseModel):
    id: ProviderId
    name: str
    description: str
    models: list[ModelInfo] = Field(default_factory=list)


PROVIDERS: list[ProviderInfo] = [
    ProviderInfo(
        id=ProviderId.openai,
        name="OpenAI",
        description="Powerful language models from OpenAI",
        models=[
            ModelInfo(id="gpt-4o", name="GPT-4o", description="Most capable GPT-4 model",
                      max_tokens=128000, supports_vision=True, supports_function_calling=True),
            ModelInfo(id="gpt-4o-mini", name="GPT-4o Mini",
                      description="Fast and efficient GPT-4 model",
                      max_tokens=128000, supports_vision=True, supports_function_calling=True),
            ModelInfo(id="gpt-3.5-turbo", name="GPT-3.5 Turbo",
                      description="Fast and cost-effective model",
                      max_tokens=16385, supports_function_calling=True),
            ModelInfo(id="dall-e-3", name="DALL-E 3",
                      description="Advanced image generation model",
                      supports_image_generation=True),
            ModelInfo(id="dall-e-2", name="DALL-E 2", description="Image generation model",
                      supports_image_generation=True),
        ],
    ),
    ProviderInfo(
        id=ProviderId.anthropic,
        name="Anthropic",
        description="Claude models from Anthropic",
        models=[
            ModelInfo(id="claude-3-5-sonnet-20241022", name="Claude 3.5 Sonnet",
                      description="Most capable Claude model",
                      max_tokens=200000, supports_vision=True, supports_function_calling=True),
            ModelInfo(id="claude-3-5-haiku-20241022", name="Claude 3.5 Haiku",
                      description="Fast and efficient Claude model",
                      max_tokens=200000, supports_vision=True, supports_function_calling=True),
            ModelInfo(id="claude-3-opus-20240229", name="Claude 3 Opus",
                      description="Previous generation Claude model",
                      max_tokens=200000, supports_vision=True, supports_function_calling=True),
        ],
    ),
    ProviderInfo(
        id=ProviderId.mistral,
        name="Mistral AI",
        description="Open source models from Mistral AI",
        models=[
            ModelInfo(id="mistral-large-latest", name="Mistral Large",
                      description="Most capable Mistral model",
                      max_tokens=128000, supports_function_calling=True),
            ModelInfo(id="mistral-medium-latest", name="Mistral Medium",
                      description="Balanced performance and cost",
                      max_tokens=32000, supports_function_calling=True),
            ModelInfo(id="mistral-small-latest", name="Mistral Small",
                      description="Fast and cost-effective model",
                      max_tokens=32000, supports_function_calling=True),
        ],
    ),
]


def get_provider_by_id(provider_id: str) -> Optional[ProviderInfo]:
    return next((p for p in PROVIDERS if p.id.value == provider_id), None)


def find_model(model_id: str) -> Optional[tuple[ProviderInfo, ModelInfo]]:
    """Locate a model across all providers."""
    for provider in PROVIDERS:
        for model in provider.models:
            if model.id == model_id:
                return provider, model
    return None


class ProviderConfig(BaseModel):
    """Which provider/model to call and with which key."""

    provider: str
    model: str
    api_key: str = Field(repr=False)


# Message conversion


def attachment_parts(attachments: list[FileAttachment]) -> list[dict[str, Any]]:
    """Images become image parts; other files become a text placeholder."""
    parts: list[dict[str, Any]] = []
    for attachment in attachments:
        if attachment.mime_type.startswith("image/") and attachment.data:
            parts.append(
                {"type": "image", "mime_type": attachment.mime_type, "data": attachment.data}
            )
        else:
            parts.append(
                {"type": "text", "text": f"[File: {attachment.name} ({attachment.mime_type})]"}
            )
    return parts


def build_provider_messages(
    history: list[TranscriptMessage],
    attachments: Optional[list[FileAttachment]] = None,
) -> list[dict[str, Any]]:
    """Convert a transcript to provider-neutral messages.

    Only the last message, and only when it is a user message, is expanded
    into a multi-part message carrying ``attachments`` (falling back to the
    message's own attachments).
    """
    messages: list[dict[str, Any]] = []
    for index, message in enumerate(history):
        is_last = index == len(history) - 1
        files = attachments if attachments is not None else message.attachments
        if is_last and message.role == "user" and files:
            content: Any = [{"type": "text", "text": message.content or ""}]
            content.extend(attachment_parts(files))
        else:
            content = message.content
        messages.append({"role": message.role, "content": content})
    return messages


def _anthropic_content(content: Any) -> Any:
    if isinstance(content, str):
        return content
    blocks = []
    for part in content:
        if part["type"] == "image":
            blocks.append({
                "type": "image",
                "source": {"type": "base64", "media_type": part["mime_type"], "data": part["data"]},
            })
        else:
            blocks.append({"type": "text", "text": part["text"]})
    return blocks


def _openai_content(content: Any) -> Any:
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if part["type"] == "image":
            parts.append({
                "type": "image_url",
                "image_url": {"url": f"data:{part['mime_type']};base64,{part['data']}"},
            })
        else:
            parts.append({"type": "text", "text": part["text"]})
    return parts


# Clients


@runtime_checkable
class ChatModel(Protocol):
    """Streams the assistant reply for a message history as text deltas."""

    provider: ProviderId
    model: str

    def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]: ...


class AnthropicChatModel:
    """Claude models through the Anthropic SDK."""

    provider = ProviderId.anthropic

    def __init__(
        self,
        api_key: str,
        model: str,
        client: Optional[AsyncAnthropic] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self.model = model
        self._client = client or AsyncAnthropic(api_key=api_key)
        self._max_tokens = max_tokens

    async def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        system = "\n\n".join(
            m["content"] for m in messages if m["role"] == "system" and isinstance(m["content"], str)
        )
        conversation = [
            {"role": m["role"], "content": _anthropic_content(m["content"])}
            for m in messages
            if m["role"] != "system"
        ]
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self._max_tokens,
            "messages": conversation,
        }
        if system:
            kwargs["system"] = system
        async with self._client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text


class OpenAICompatibleChatModel:
    """Chat-completions streaming over httpx (OpenAI and Mistral)."""

    def __init__(
        self,
        provider: ProviderId,
        api_key: str,
        model: str,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        self.provider = provider
        self.model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout

    async def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        payload = {
            "model": self.model,
            "stream": True,
            "messages": [
                {"role": m["role"], "content": _openai_content(m["content"])} for m in messages
            ],
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        try:
            async with client.stream(
                "POST", f"{self._base_url}/chat/completions", json=payload, headers=headers
            ) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    resp.raise_for_status()
                async for line in resp.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data_str = line[5:].strip()
                    if data_str == "[DONE]":
                        break
                    try:
                        data = json.loads(data_str)
                    except json.JSONDecodeError:
                        continue
                    for choice in data.get("choices") or []:
                        delta = (choice.get("delta") or {}).get("content")
                        if delta:
                            yield delta
        finally:
            if self._http_client is None:
                await client.aclose()


def create_chat_model(
    config: ProviderConfig, http_client: Optional[httpx.AsyncClient] = None
) -> ChatModel:
    """Build the streaming client for ``config``.

    Raises:
        UnsupportedProviderError: Provider is not OpenAI, Anthropic or Mistral.
        ValidationError: No API key supplied.
    """
    try:
        provider = ProviderId(config.provider)
    except ValueError:
        raise UnsupportedProviderError(config.provider) from None
    if not config.api_key:
        raise ValidationError(f"Missing API key for provider: {provider.value}")

    logger.info("Creating %s chat model %s", provider.value, config.model)
    if provider == ProviderId.anthropic:
        return AnthropicChatModel(config.api_key, config.model)
    base_url = _OPENAI_COMPATIBLE_URLS[provider]
    return OpenAICompatibleChatModel(
        provider, config.api_key, config.model, base_url, http_client
    )
