import asyncio
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from companion.errors import ProviderError  # noqa: E402
from companion.models import GenerationSettings  # noqa: E402
from companion.persistence.session_store import (  # noqa: E402
    InMemoryKeyValueStore,
    NamespacedStore,
)
from companion.prompts import DefaultPromptFactory  # noqa: E402
from companion.session import SessionManager  # noqa: E402


class FakeChatHandle:
    def __init__(self, provider, instruction, history, settings):
        self.provider = provider
        self.instruction = instruction
        self.history = list(history)
        self.settings = settings
        self.sent = []

    def send(self, parts):
        self.sent.append(parts)
        return self.provider._next_reply()


class FakeStreamingSession:
    """Replies only after `expect_sent` chunks arrived, like a turn-based server."""

    def __init__(self, incoming=(), fail_on_send=None, expect_sent=0):
        self.incoming = list(incoming)
        self.sent = []
        self.fail_on_send = fail_on_send
        self.expect_sent = expect_sent

    async def send_audio(self, chunk):
        if self.fail_on_send is not None:
            raise self.fail_on_send
        self.sent.append(chunk)

    async def receive(self):
        while len(self.sent) < self.expect_sent:
            await asyncio.sleep(0)
        for data in self.incoming:
            await asyncio.sleep(0)
            yield data


class FakeProvider:
    """Scripted replies; an Exception in the script is raised instead."""

    name = "fake"

    def __init__(self, replies=(), streaming=None):
        self.replies = list(replies)
        self.generated = []
        self.chats = []
        self.streaming = streaming or FakeStreamingSession()
        self.stream_instruction = None

    def _next_reply(self):
        if not self.replies:
            raise ProviderError("no scripted reply", provider=self.name)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def generate(self, request, settings):
        self.generated.append((request, settings))
        return self._next_reply()

    def create_chat_session(self, instruction, history, settings):
        handle = FakeChatHandle(self, instruction, history, settings)
        self.chats.append(handle)
        return handle

    @asynccontextmanager
    async def open_streaming_session(self, instruction, settings):
        self.stream_instruction = instruction
        yield self.streaming


class FakeAudioSource:
    def __init__(self, frames=(), sample_rate=16000, open_error=None):
        self.sample_rate = sample_rate
        self._frames = [np.asarray(f, dtype=np.float32) for f in frames]
        self.open_error = open_error
        self.opened = False
        self.closed = False

    async def open(self):
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    async def frames(self):
        for frame in self._frames:
            await asyncio.sleep(0)
            yield frame

    async def close(self):
        self.closed = True


class FakeAudioSink:
    def __init__(self, sample_rate=24000, now=0.0):
        self.sample_rate = sample_rate
        self.now = now
        self.played = []
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def current_time(self):
        return self.now

    def play(self, samples, start_at):
        self.played.append((np.asarray(samples), start_at))

    def close(self):
        self.closed = True


class FailingStore:
    """Key-value store whose every operation raises."""

    def __init__(self, exc):
        self.exc = exc

    def get(self, key):
        raise self.exc

    def set(self, key, value):
        raise self.exc

    def delete(self, key):
        raise self.exc

    def list_keys(self):
        raise self.exc


@pytest.fixture
def settings():
    return GenerationSettings(model="fake-model", temperature=0.9)


@pytest.fixture
def prompts():
    return DefaultPromptFactory()


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def sessions(store, prompts):
    return SessionManager(NamespacedStore(store), prompts.persona_instructions())
