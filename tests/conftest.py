"""Shared fixtures: a temp-dir session store, a scripted chat model and a flow context."""

import os
import sys
from unittest.mock import AsyncMock, Mock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chat import ChatTurnExecutor, SessionManager
from errors import ModelInvocationError
from flows import FlowContext, SessionLocks
from models import ChunkingConfig
from session_store import FileSessionStore
from tools import LanguageModel, SynthesizedSpeech


class ScriptedChatModel(LanguageModel):
    """Replies "reply to <last user message>" and records what it was given."""

    def __init__(self, fail_on_call=None, empty_on_call=None):
        self.name = "scripted-model"
        self.calls = []
        self.fail_on_call = fail_on_call
        self.empty_on_call = empty_on_call

    async def generate(self, history, system_instructions, generation_config, documents):
        self.calls.append({
            "history": [(t.role.value, t.content) for t in history],
            "system_instructions": system_instructions,
            "generation_config": generation_config,
            "documents": list(documents),
        })
        call_number = len(self.calls)
        if call_number == self.fail_on_call:
            raise ModelInvocationError("provider exploded")
        if call_number == self.empty_on_call:
            return "   "
        return f"reply to {history[-1].content}"


@pytest.fixture
def store(tmp_path):
    return FileSessionStore(tmp_path / "sessions")


@pytest.fixture
def chat_model():
    return ScriptedChatModel()


@pytest.fixture
def make_chat_model():
    return ScriptedChatModel


@pytest.fixture
def speech_to_text():
    stt = Mock()
    stt.transcribe = AsyncMock(return_value="Hello from audio")
    return stt


@pytest.fixture
def text_to_speech():
    tts = Mock()
    tts.synthesize = AsyncMock(return_value=SynthesizedSpeech(audio=b"ID3audio", content_type="audio/mpeg"))
    return tts


@pytest.fixture
def flow_context(store, chat_model, speech_to_text, text_to_speech):
    return FlowContext(
        store=store,
        sessions=SessionManager(store),
        executor=ChatTurnExecutor(store, chat_model),
        speech_to_text=speech_to_text,
        text_to_speech=text_to_speech,
        retriever=None,
        chunking=ChunkingConfig(min_length=20, max_length=80, overlap=10),
        locks=SessionLocks(),
    )
