"""
Unit tests for tools/speech_tool.py - transcription and synthesis.
"""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock, Mock

import openai
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import InvalidInputError, ProviderUnavailableError
from tools.speech_tool import SpeechToText, TextToSpeech, normalize_content_type
from tests.test_logger import test_logger


def stt_client(text=" Hello there. "):
    client = MagicMock()
    client.audio.transcriptions.create = AsyncMock(return_value=Mock(text=text))
    return client


def tts_client(audio=b"ID3\x04mp3-bytes"):
    client = MagicMock()
    client.audio.speech.create = AsyncMock(return_value=Mock(content=audio))
    return client


class TestSpeechToText:
    """Test suite for SpeechToText."""

    def setup_method(self):
        test_logger.log_section("TESTING: tools/speech_tool.py - SpeechToText")

    def test_transcribe_sends_named_file(self):
        test_logger.log_test_start("speech_tool.py", "SpeechToText.transcribe", "file_tuple")

        try:
            client = stt_client()
            text = asyncio.run(SpeechToText(client).transcribe(b"\xff\xfbaudio", "audio/mp3"))

            assert text == "Hello there."
            kwargs = client.audio.transcriptions.create.call_args.kwargs
            assert kwargs["model"] == "whisper-1"
            assert kwargs["file"] == ("speech.mp3", b"\xff\xfbaudio", "audio/mp3")

            test_logger.log_test_pass("speech_tool.py", "SpeechToText.transcribe", "file_tuple")
        except Exception as e:
            test_logger.log_test_fail("speech_tool.py", "SpeechToText.transcribe", "file_tuple", str(e))
            raise

    def test_content_type_parameters_are_ignored(self):
        client = stt_client()
        asyncio.run(SpeechToText(client).transcribe(b"webm", "audio/webm;codecs=opus"))

        assert client.audio.transcriptions.create.call_args.kwargs["file"][0] == "speech.webm"

    def test_unsupported_content_type(self):
        client = stt_client()
        with pytest.raises(InvalidInputError):
            asyncio.run(SpeechToText(client).transcribe(b"data", "video/avi"))
        client.audio.transcriptions.create.assert_not_called()

    def test_empty_audio(self):
        with pytest.raises(InvalidInputError):
            asyncio.run(SpeechToText(stt_client()).transcribe(b"", "audio/wav"))

    def test_provider_error(self):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(side_effect=openai.OpenAIError("timeout"))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            asyncio.run(SpeechToText(client).transcribe(b"data", "audio/mp3"))
        assert exc_info.value.provider == "openai"

    def test_normalize_content_type(self):
        assert normalize_content_type(None) == "audio/mp3"
        assert normalize_content_type(" Audio/WAV ") == "audio/wav"


class TestTextToSpeech:
    """Test suite for TextToSpeech."""

    def setup_method(self):
        test_logger.log_section("TESTING: tools/speech_tool.py - TextToSpeech")

    def test_synthesize_uses_defaults(self):
        test_logger.log_test_start("speech_tool.py", "TextToSpeech.synthesize", "defaults")

        try:
            client = tts_client()
            speech = asyncio.run(TextToSpeech(client).synthesize("Ahoy!"))

            assert speech.audio == b"ID3\x04mp3-bytes"
            assert speech.content_type == "audio/mpeg"
            kwargs = client.audio.speech.create.call_args.kwargs
            assert (kwargs["model"], kwargs["voice"], kwargs["input"]) == ("tts-1", "alloy", "Ahoy!")

            test_logger.log_test_pass("speech_tool.py", "TextToSpeech.synthesize", "defaults")
        except Exception as e:
            test_logger.log_test_fail("speech_tool.py", "TextToSpeech.synthesize", "defaults", str(e))
            raise

    def test_voice_and_model_override(self):
        client = tts_client()
        asyncio.run(TextToSpeech(client).synthesize("Hi", voice_id="nova", model_id="tts-1-hd"))

        kwargs = client.audio.speech.create.call_args.kwargs
        assert (kwargs["model"], kwargs["voice"]) == ("tts-1-hd", "nova")

    def test_empty_text(self):
        client = tts_client()
        with pytest.raises(InvalidInputError):
            asyncio.run(TextToSpeech(client).synthesize("  "))
        client.audio.speech.create.assert_not_called()

    def test_provider_error(self):
        client = MagicMock()
        client.audio.speech.create = AsyncMock(side_effect=openai.OpenAIError("quota"))

        with pytest.raises(ProviderUnavailableError):
            asyncio.run(TextToSpeech(client).synthesize("Hi"))
