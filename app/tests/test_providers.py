import asyncio
import base64
from contextlib import asynccontextmanager
from types import SimpleNamespace

import httpx
import pytest
from google.genai import types
from openai import OpenAIError

from companion.errors import ConfigurationError, ProviderError
from companion.models import GenerationSettings, PcmChunk, ProviderRequest
from companion.services.llm_gemini import GeminiProvider, to_config
from companion.services.llm_openai import OpenAIProvider, to_messages, to_user_message

REQUEST = ProviderRequest(
    instruction="be kind",
    history=[{"role": "user", "content": "hi"}, {"role": "model", "content": "hello"}],
    parts=[
        {"text": "look"},
        {"inline_data": {"mime_type": "image/png", "data": "aGVsbG8="}},
    ],
)


# ---------------------------
# Gemini
# ---------------------------
class FakeGeminiModels:
    def __init__(self, reply="ok", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.reply)


class FakeGeminiChat:
    def __init__(self, replies):
        self.replies = list(replies)
        self.sent = []

    def send_message(self, parts):
        self.sent.append(parts)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


class FakeGeminiChats:
    def __init__(self, chat):
        self.chat = chat
        self.created = []

    def create(self, **kwargs):
        self.created.append(kwargs)
        return self.chat


class FakeLiveSession:
    def __init__(self, turns):
        self.turns = list(turns)
        self.sent = []

    async def send_realtime_input(self, *, audio):
        self.sent.append(audio)

    async def receive(self):
        messages = self.turns.pop(0) if self.turns else []
        for message in messages:
            yield message


def live_message(data: bytes):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data))
    return SimpleNamespace(
        server_content=SimpleNamespace(model_turn=SimpleNamespace(parts=[part]))
    )


def gemini_client(models=None, chat=None, live=None):
    connected = {}

    @asynccontextmanager
    async def connect(*, model, config):
        connected.update(model=model, config=config)
        yield live

    client = SimpleNamespace(
        models=models or FakeGeminiModels(),
        chats=FakeGeminiChats(chat or FakeGeminiChat([])),
        aio=SimpleNamespace(live=SimpleNamespace(connect=connect)),
    )
    return client, connected


def test_gemini_generate_maps_request():
    models = FakeGeminiModels(reply="extracted")
    client, _ = gemini_client(models=models)
    provider = GeminiProvider(None, client=client)

    text = provider.generate(REQUEST, GenerationSettings(model="m", temperature=0.0))
    assert text == "extracted"

    call = models.calls[0]
    assert call["model"] == "m"
    contents = call["contents"]
    assert [c.role for c in contents] == ["user", "model", "user"]
    image = contents[-1].parts[1].inline_data
    assert image.mime_type == "image/png"
    assert image.data == b"hello"
    assert call["config"].system_instruction == "be kind"
    assert call["config"].temperature == 0.0


def test_gemini_config_flags():
    config = to_config(
        GenerationSettings(
            model="m", relaxed_safety=True, use_search=True, thinking_budget=32768
        )
    )
    assert len(config.safety_settings) == 4
    assert all(
        s.threshold == types.HarmBlockThreshold.BLOCK_ONLY_HIGH
        for s in config.safety_settings
    )
    assert config.tools[0].google_search is not None
    assert config.thinking_config.thinking_budget == 32768

    plain = to_config(GenerationSettings(model="m"))
    assert plain.safety_settings is None
    assert plain.tools is None


def test_gemini_transport_error_becomes_provider_error():
    client, _ = gemini_client(models=FakeGeminiModels(error=httpx.ConnectError("boom")))
    provider = GeminiProvider(None, client=client)
    with pytest.raises(ProviderError) as excinfo:
        provider.generate(REQUEST, GenerationSettings(model="m"))
    assert excinfo.value.provider == "gemini"


def test_gemini_chat_session_replays_history():
    chat = FakeGeminiChat(["first", httpx.ReadTimeout("slow")])
    client, _ = gemini_client(chat=chat)
    provider = GeminiProvider(None, client=client)

    handle = provider.create_chat_session(
        "persona", REQUEST.history, GenerationSettings(model="m")
    )
    created = client.chats.created[0]
    assert [c.parts[0].text for c in created["history"]] == ["hi", "hello"]
    assert created["config"].system_instruction == "persona"

    assert handle.send([{"text": "again"}]) == "first"
    assert chat.sent[0][0].text == "again"
    with pytest.raises(ProviderError):
        handle.send([{"text": "more"}])


def test_gemini_requires_key_without_client():
    with pytest.raises(ConfigurationError):
        GeminiProvider("  ")


def test_gemini_live_session_round_trip():
    live = FakeLiveSession([[live_message(b"\x01\x00"), live_message(b"\x02\x00")]])
    client, connected = gemini_client(live=live)
    provider = GeminiProvider(None, client=client)

    async def scenario():
        received = []
        async with provider.open_streaming_session(
            "talk", GenerationSettings(model="live")
        ) as session:
            await session.send_audio(
                PcmChunk(data=base64.b64encode(b"\x00\x00").decode(), mime_type="audio/pcm;rate=16000")
            )
            async for data in session.receive():
                received.append(base64.b64decode(data))
        return received

    assert asyncio.run(scenario()) == [b"\x01\x00", b"\x02\x00"]
    assert connected["model"] == "live"
    assert connected["config"].system_instruction == "talk"
    assert live.sent[0].data == b"\x00\x00"
    assert live.sent[0].mime_type == "audio/pcm;rate=16000"


# ---------------------------
# OpenAI
# ---------------------------
class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=reply))]
        )


def openai_client(replies):
    completions = FakeCompletions(replies)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


def test_openai_message_mapping():
    messages = to_messages("be kind", REQUEST.history)
    assert messages == [
        {"role": "system", "content": "be kind"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]
    user = to_user_message(REQUEST.parts)
    assert user["content"][0] == {"type": "text", "text": "look"}
    assert user["content"][1]["image_url"]["url"] == "data:image/png;base64,aGVsbG8="
    assert to_user_message([{"text": "plain"}]) == {"role": "user", "content": "plain"}

    audio = to_user_message([{"inline_data": {"mime_type": "audio/wav", "data": "AA=="}}])
    assert audio["content"][0]["input_audio"] == {"data": "AA==", "format": "wav"}


def test_openai_generate_and_error():
    client, completions = openai_client(["done", OpenAIError("quota")])
    provider = OpenAIProvider(None, client=client)
    settings = GenerationSettings(model="gpt", temperature=0.9)

    assert provider.generate(REQUEST, settings) == "done"
    assert completions.calls[0]["temperature"] == 0.9
    assert completions.calls[0]["messages"][0]["role"] == "system"

    with pytest.raises(ProviderError) as excinfo:
        provider.generate(REQUEST, settings)
    assert excinfo.value.provider == "openai"


def test_openai_chat_handle_keeps_history():
    client, completions = openai_client(["one", "two"])
    provider = OpenAIProvider(None, client=client)
    handle = provider.create_chat_session("sys", [], GenerationSettings(model="gpt"))

    assert handle.send([{"text": "a"}]) == "one"
    assert handle.send([{"text": "b"}]) == "two"
    assert completions.calls[1]["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "a"},
        {"role": "assistant", "content": "one"},
        {"role": "user", "content": "b"},
    ]


def test_openai_has_no_live_audio():
    client, _ = openai_client([])
    provider = OpenAIProvider(None, client=client)

    async def scenario():
        async with provider.open_streaming_session("x", GenerationSettings(model="m")):
            pass

    with pytest.raises(ProviderError):
        asyncio.run(scenario())


def test_gemini_bad_base64_becomes_provider_error():
    models = FakeGeminiModels()
    client, _ = gemini_client(models=models)
    provider = GeminiProvider(None, client=client)
    broken = ProviderRequest(
        instruction=None,
        parts=[{"inline_data": {"mime_type": "image/jpeg", "data": "abc"}}],
    )
    with pytest.raises(ProviderError):
        provider.generate(broken, GenerationSettings(model="m"))
    assert models.calls == []
