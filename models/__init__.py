"""Data models for the Voice & PDF Chat backend."""

from .session_model import Role, Turn, GenerationConfig, SessionConfig, Session
from .document_models import RetrievedDocument, ChunkingConfig
from .chat_models import (
    SpeechOptions, GenerationOverrides,
    CreateChatRequest, CreateChatResponse,
    TextMessageRequest, TextMessageResponse,
    SpeechMessageRequest, SpeechMessageResponse,
    SessionResponse, DeleteChatResponse, SessionStatsResponse,
    TranscriptionRequest, TranscriptionResponse,
    SynthesisRequest, SynthesisResponse,
    PdfUrlRequest, PdfBase64Request, PdfExtractRequest, PdfExtractResponse,
    IndexPdfResponse, RetrieveRequest, RetrieveResponse
)

__all__ = [
    "Role", "Turn", "GenerationConfig", "SessionConfig", "Session",
    "RetrievedDocument", "ChunkingConfig",
    "SpeechOptions", "GenerationOverrides",
    "CreateChatRequest", "CreateChatResponse",
    "TextMessageRequest", "TextMessageResponse",
    "SpeechMessageRequest", "SpeechMessageResponse",
    "SessionResponse", "DeleteChatResponse", "SessionStatsResponse",
    "TranscriptionRequest", "TranscriptionResponse",
    "SynthesisRequest", "SynthesisResponse",
    "PdfUrlRequest", "PdfBase64Request", "PdfExtractRequest", "PdfExtractResponse",
    "IndexPdfResponse", "RetrieveRequest", "RetrieveResponse"
]
