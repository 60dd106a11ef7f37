"""Provider adapters used by the chat flows."""

from .language_model import LanguageModel, OpenAIChatModel, GeminiChatModel
from .speech_tool import SpeechToText, TextToSpeech, SynthesizedSpeech
from .rag_tool import RAGTool
from .pdf_tool import extract_text, chunk_text, documents_from_text

__all__ = [
    "LanguageModel", "OpenAIChatModel", "GeminiChatModel",
    "SpeechToText", "TextToSpeech", "SynthesizedSpeech",
    "RAGTool",
    "extract_text", "chunk_text", "documents_from_text"
]
