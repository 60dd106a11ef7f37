"""
Speech-to-text and text-to-speech adapters on the OpenAI audio API.
"""

import time
from dataclasses import dataclass
from typing import Optional

import openai
from openai import AsyncOpenAI

from errors import InvalidInputError, ProviderUnavailableError
from logger import get_logger

logger = get_logger(__name__)

# content type -> file extension the transcription endpoint recognises
SUPPORTED_AUDIO_TYPES = {
    "audio/mp3": "mp3",
    "audio/mpeg": "mp3",
    "audio/mp4": "mp4",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/flac": "flac",
}

SYNTHESIS_CONTENT_TYPE = "audio/mpeg"


def normalize_content_type(content_type: Optional[str]) -> str:
    """Lower-case the media type and drop parameters such as ``;codecs=opus``."""
    return (content_type or "audio/mp3").split(";")[0].strip().lower()


@dataclass
class SynthesizedSpeech:
    audio: bytes
    content_type: str


class SpeechToText:
    """Transcribes recorded audio."""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1"):
        self.client = client
        self.model = model

    async def transcribe(self, audio: bytes, content_type: str = "audio/mp3") -> str:
        """
        Transcribe audio bytes to text.

        Raises:
            InvalidInputError: Empty audio or unsupported content type.
            ProviderUnavailableError: The transcription call failed.
        """
        media_type = normalize_content_type(content_type)
        extension = SUPPORTED_AUDIO_TYPES.get(media_type)
        if extension is None:
            raise InvalidInputError(
                f"Unsupported audio content type: {content_type}",
                f"Supported types: {', '.join(sorted(SUPPORTED_AUDIO_TYPES))}"
            )
        if not audio:
            raise InvalidInputError("Audio payload is empty")

        start_time = time.time()
        try:
            result = await self.client.audio.transcriptions.create(
                model=self.model,
                file=(f"speech.{extension}", audio, media_type),
            )
        except openai.OpenAIError as e:
            logger.provider_call("openai", "transcribe", False, model=self.model, error=str(e))
            raise ProviderUnavailableError("openai", "transcription failed", str(e)) from e

        logger.provider_call(
            "openai", "transcribe", True,
            model=self.model,
            audio_bytes=len(audio),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )
        return (result.text or "").strip()


class TextToSpeech:
    """Synthesizes speech for reply text."""

    def __init__(self, client: AsyncOpenAI, default_voice_id: str = "alloy", default_model_id: str = "tts-1"):
        self.client = client
        self.default_voice_id = default_voice_id
        self.default_model_id = default_model_id

    async def synthesize(
        self,
        text: str,
        voice_id: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> SynthesizedSpeech:
        """
        Synthesize mp3 audio for text.

        Raises:
            InvalidInputError: Text is empty.
            ProviderUnavailableError: The synthesis call failed.
        """
        if not text or not text.strip():
            raise InvalidInputError("Cannot synthesize speech from empty text")

        voice = voice_id or self.default_voice_id
        model = model_id or self.default_model_id

        start_time = time.time()
        try:
            response = await self.client.audio.speech.create(
                model=model,
                voice=voice,
                input=text,
                response_format="mp3",
            )
        except openai.OpenAIError as e:
            logger.provider_call("openai", "synthesize", False, model=model, voice=voice, error=str(e))
            raise ProviderUnavailableError("openai", "speech synthesis failed", str(e)) from e

        audio = response.content
        logger.provider_call(
            "openai", "synthesize", True,
            model=model,
            voice=voice,
            audio_bytes=len(audio),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )
        return SynthesizedSpeech(audio=audio, content_type=SYNTHESIS_CONTENT_TYPE)
