"""
Request and response payloads for every flow.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .document_models import RetrievedDocument
from .session_model import GenerationConfig, SessionConfig, Turn


class SpeechOptions(BaseModel):
    """Optional speech synthesis of a chat reply."""
    generate_audio: bool = False
    voice_id: Optional[str] = None
    model_id: Optional[str] = None


class GenerationOverrides(BaseModel):
    """Per-request generation parameters; unset fields take the documented defaults."""
    system_instructions: Optional[str] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    stop_sequences: Optional[List[str]] = None

    def generation_config(self) -> Optional[GenerationConfig]:
        """Build a GenerationConfig, or None when no parameter was supplied."""
        if self.max_tokens is None and self.temperature is None and self.stop_sequences is None:
            return None
        defaults = GenerationConfig()
        return GenerationConfig(
            max_output_tokens=self.max_tokens if self.max_tokens is not None else defaults.max_output_tokens,
            temperature=self.temperature if self.temperature is not None else defaults.temperature,
            stop_sequences=self.stop_sequences if self.stop_sequences is not None else [],
        )


class CreateChatRequest(GenerationOverrides):
    """Create a new chat session."""


class CreateChatResponse(BaseModel):
    session_id: str


class TextMessageRequest(GenerationOverrides):
    """Send a text message to an existing session."""
    message_text: str = Field(..., min_length=1)
    retrieve_context: bool = False
    speech: SpeechOptions = Field(default_factory=SpeechOptions)


class TextMessageResponse(BaseModel):
    text_response: str
    audio_response: Optional[str] = None
    audio_response_content_type: Optional[str] = None
    audio_error: Optional[str] = None
    sources: List[RetrievedDocument] = Field(default_factory=list)


class SpeechMessageRequest(GenerationOverrides):
    """Send a recorded voice message to an existing session."""
    base64_audio: str = Field(..., min_length=1)
    content_type: str = "audio/mp3"
    retrieve_context: bool = False
    speech: SpeechOptions = Field(default_factory=SpeechOptions)


class SpeechMessageResponse(BaseModel):
    transcript: str
    response: str
    audio_response: Optional[str] = None
    audio_response_content_type: Optional[str] = None
    audio_error: Optional[str] = None
    sources: List[RetrievedDocument] = Field(default_factory=list)


class SessionResponse(BaseModel):
    session_id: str
    created_at: datetime
    last_active: datetime
    config: SessionConfig
    history: List[Turn]
    message_count: int


class DeleteChatResponse(BaseModel):
    message: str
    session_id: str


class SessionStatsResponse(BaseModel):
    total_sessions: int


class TranscriptionRequest(BaseModel):
    base64_audio: str = Field(..., min_length=1)
    content_type: str = "audio/mp3"


class TranscriptionResponse(BaseModel):
    text: str


class SynthesisRequest(BaseModel):
    text: str = Field(..., min_length=1)
    voice_id: Optional[str] = None
    model_id: Optional[str] = None


class SynthesisResponse(BaseModel):
    base64_audio: str
    content_type: str


class PdfUrlRequest(BaseModel):
    url: str = Field(..., pattern="^https?://")


class PdfBase64Request(BaseModel):
    base64_pdf: str = Field(..., min_length=1)
    source_name: Optional[str] = None


class PdfExtractRequest(BaseModel):
    """Exactly one of url or base64_pdf must be given."""
    url: Optional[str] = Field(default=None, pattern="^https?://")
    base64_pdf: Optional[str] = None


class PdfExtractResponse(BaseModel):
    text: str


class IndexPdfResponse(BaseModel):
    chunks_indexed: int
    source: str


class RetrieveRequest(BaseModel):
    query: str = Field(..., min_length=1)


class RetrieveResponse(BaseModel):
    documents: List[RetrievedDocument] = Field(default_factory=list)
