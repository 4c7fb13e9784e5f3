"""Tests for chat provider catalogue, message conversion and clients."""

import json

import httpx
import pytest

from src.errors.domain import UnsupportedProviderError, ValidationError
from src.services.chat_models import FileAttachment, TranscriptMessage
from src.services.chat_providers import (
    AnthropicChatModel,
    OpenAICompatibleChatModel,
    ProviderConfig,
    ProviderId,
    build_provider_messages,
    create_chat_model,
    find_model,
    get_provider_by_id,
)


class TestCatalogue:
    def test_three_providers(self):
        assert {p.value for p in ProviderId} == {"openai", "anthropic", "mistral"}

    def test_get_provider(self):
        assert get_provider_by_id("mistral").name == "Mistral AI"
        assert get_provider_by_id("cohere") is None

    def test_find_model(self):
        provider, model = find_model("gpt-4o")
        assert provider.id == ProviderId.openai
        assert model.supports_vision
        assert find_model("nope") is None


class TestFactory:
    def test_unsupported_provider_fails_closed(self):
        with pytest.raises(UnsupportedProviderError):
            create_chat_model(ProviderConfig(provider="cohere", model="x", api_key="k"))

    def test_missing_key(self):
        with pytest.raises(ValidationError, match="Missing API key"):
            create_chat_model(ProviderConfig(provider="openai", model="gpt-4o", api_key=""))

    def test_anthropic(self):
        model = create_chat_model(
            ProviderConfig(provider="anthropic", model="claude-3-5-haiku-20241022", api_key="k")
        )
        assert isinstance(model, AnthropicChatModel)

    @pytest.mark.parametrize("provider", ["openai", "mistral"])
    def test_openai_compatible(self, provider):
        model = create_chat_model(ProviderConfig(provider=provider, model="m", api_key="k"))
        assert isinstance(model, OpenAICompatibleChatModel)
        assert model.provider == ProviderId(provider)

    def test_api_key_not_in_repr(self):
        assert "secret" not in repr(ProviderConfig(provider="openai", model="m", api_key="secret"))


class TestBuildProviderMessages:
    def test_only_last_user_message_expanded(self):
        image = FileAttachment(id="1", name="a.png", mime_type="image/png", data="AAA")
        history = [
            TranscriptMessage(role="user", content="old", attachments=[image]),
            TranscriptMessage(role="assistant", content="ok"),
            TranscriptMessage(role="user", content="new", attachments=[image]),
        ]
        messages = build_provider_messages(history)
        assert messages[0]["content"] == "old"
        assert messages[2]["content"] == [
            {"type": "text", "text": "new"},
            {"type": "image", "mime_type": "image/png", "data": "AAA"},
        ]

    def test_non_image_becomes_placeholder(self):
        doc = FileAttachment(id="2", name="r.pdf", mime_type="application/pdf")
        messages = build_provider_messages(
            [TranscriptMessage(role="user", content="read this")], attachments=[doc]
        )
        assert messages[0]["content"][1] == {
            "type": "text",
            "text": "[File: r.pdf (application/pdf)]",
        }


class TestOpenAICompatibleStreaming:
    @pytest.mark.asyncio
    async def test_parses_sse_deltas(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            chunks = [
                {"choices": [{"delta": {"role": "assistant"}}]},
                {"choices": [{"delta": {"content": "Hel"}}]},
                {"choices": [{"delta": {"content": "lo"}}]},
            ]
            body = "".join(f"data: {json.dumps(c)}\n\n" for c in chunks)
            body += ": keep-alive\n\ndata: [DONE]\n\n"
            return httpx.Response(200, text=body)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            model = OpenAICompatibleChatModel(
                ProviderId.openai, "sk-test", "gpt-4o", "https://example.test/v1", client
            )
            deltas = [d async for d in model.stream([{"role": "user", "content": "hi"}])]

        assert deltas == ["Hel", "lo"]
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(401, text="bad key"))
        async with httpx.AsyncClient(transport=transport) as client:
            model = OpenAICompatibleChatModel(
                ProviderId.mistral, "k", "m", "https://example.test/v1", client
            )
            with pytest.raises(httpx.HTTPStatusError):
                async for _ in model.stream([{"role": "user", "content": "hi"}]):
                    pass


class _FakeTextStream:
    def __init__(self, texts):
        self._texts = texts

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    async def text_stream(self):
        for text in self._texts:
            yield text


class _FakeMessages:
    def __init__(self, texts):
        self.texts = texts
        self.kwargs = None

    def stream(self, **kwargs):
        self.kwargs = kwargs
        return _FakeTextStream(self.texts)


class _FakeAnthropic:
    def __init__(self, texts):
        self.messages = _FakeMessages(texts)


@pytest.mark.asyncio
async def test_anthropic_stream_splits_system_prompt():
    client = _FakeAnthropic(["Hi", "!"])
    model = AnthropicChatModel("k", "claude-3-5-haiku-20241022", client=client)
    messages = [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": [
            {"type": "text", "text": "see"},
            {"type": "image", "mime_type": "image/png", "data": "AAA"},
        ]},
    ]
    deltas = [d async for d in model.stream(messages)]

    assert deltas == ["Hi", "!"]
    sent = client.messages.kwargs
    assert sent["system"] == "Be brief."
    assert [m["role"] for m in sent["messages"]] == ["user"]
    assert sent["messages"][0]["content"][1]["source"]["media_type"] == "image/png"
