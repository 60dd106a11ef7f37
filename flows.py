"""
Flows: the externally invokable operations of the backend.

Every flow takes a FlowContext holding the shared collaborator handles
(store, model, speech, retrieval) built once at startup, so tests can pass
their own doubles per call. Session-targeted flows route through the
session store; the rest are stateless request/response wrappers.
"""

import asyncio
import base64
import binascii
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional, Tuple, Union

from chat import ChatTurnExecutor, SessionManager
from config import AppConfig
from connection import Connections
from errors import InvalidInputError, ProviderUnavailableError
from logger import get_logger, log_async_function_call
from models import (
    ChunkingConfig, RetrievedDocument, SpeechOptions,
    CreateChatRequest, CreateChatResponse,
    TextMessageRequest, TextMessageResponse,
    SpeechMessageRequest, SpeechMessageResponse,
    SessionResponse, DeleteChatResponse, SessionStatsResponse,
    TranscriptionRequest, TranscriptionResponse,
    SynthesisRequest, SynthesisResponse,
    PdfUrlRequest, PdfBase64Request, PdfExtractRequest, PdfExtractResponse,
    IndexPdfResponse, RetrieveRequest, RetrieveResponse
)
from session_store import FileSessionStore
from tools import (
    GeminiChatModel, LanguageModel, OpenAIChatModel, RAGTool,
    SpeechToText, TextToSpeech, documents_from_text, extract_text
)

logger = get_logger(__name__)


class SessionLocks:
    """
    Per-session asyncio locks serializing turns within one process.

    The store itself is last-writer-wins; this registry only orders
    requests that reach the same process. An entry lives only while some
    request holds or waits on it.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[session_id] - 1
            if remaining:
                self._holders[session_id] = remaining
            else:
                del self._holders[session_id]
                del self._locks[session_id]

    @property
    def active(self) -> int:
        """Number of sessions with a holder or waiter."""
        return len(self._locks)


@dataclass
class FlowContext:
    """Shared, read-only collaborator handles passed into every flow."""
    store: FileSessionStore
    sessions: SessionManager
    executor: ChatTurnExecutor
    speech_to_text: SpeechToText
    text_to_speech: TextToSpeech
    retriever: Optional[RAGTool] = None
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    locks: SessionLocks = field(default_factory=SessionLocks)

    def require_retriever(self) -> RAGTool:
        if self.retriever is None:
            raise ProviderUnavailableError("retrieval", "not configured (set QDRANT_URL and COHERE_API_KEY)")
        return self.retriever


def build_language_model(config: AppConfig, connections: Connections) -> LanguageModel:
    if config.chat_provider == "gemini":
        connections.configure_gemini()
        return GeminiChatModel(model=config.gemini_model_name)
    return OpenAIChatModel(connections.get_openai_client(), model=config.chat_model_name)


def build_flow_context(config: AppConfig, connections: Connections) -> FlowContext:
    """Construct every collaborator once from validated configuration."""
    store = FileSessionStore(config.sessions_dir)
    model = build_language_model(config, connections)
    openai_client = connections.get_openai_client()

    retriever = None
    if config.retrieval_enabled:
        retriever = RAGTool(
            qdrant_client=connections.get_qdrant_client(),
            cohere_client=connections.get_cohere_client(),
            collection_name=config.qdrant_collection_name,
            embedding_model=config.embedding_model,
            top_k=config.top_k_results,
            score_threshold=config.score_threshold,
        )
    else:
        logger.warning("Retrieval disabled: QDRANT_URL or COHERE_API_KEY not set")

    logger.info(
        "Flow context built",
        chat_provider=config.chat_provider,
        chat_model=model.name,
        sessions_dir=config.sessions_dir,
        retrieval=retriever is not None
    )

    return FlowContext(
        store=store,
        sessions=SessionManager(store, config.default_system_instructions),
        executor=ChatTurnExecutor(store, model),
        speech_to_text=SpeechToText(openai_client, model=config.stt_model_id),
        text_to_speech=TextToSpeech(
            openai_client,
            default_voice_id=config.tts_voice_id,
            default_model_id=config.tts_model_id
        ),
        retriever=retriever,
        chunking=ChunkingConfig(
            min_length=min(config.chunk_min_length, config.chunk_max_length),
            max_length=config.chunk_max_length,
            splitter=config.chunk_splitter,
            overlap=config.chunk_overlap,
        ),
        locks=SessionLocks(enabled=config.session_locking),
    )


def decode_base64(payload: str, what: str) -> bytes:
    """Decode base64, accepting an optional ``data:...;base64,`` prefix."""
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError(f"Invalid base64 {what}", str(e)) from e
    if not data:
        raise InvalidInputError(f"Empty {what}")
    return data


async def _retrieve_for(ctx: FlowContext, text: str, enabled: bool) -> List[RetrievedDocument]:
    if not enabled:
        return []
    retriever = ctx.require_retriever()
    return await asyncio.to_thread(retriever.retrieve, text)


async def _synthesize_reply(
    ctx: FlowContext, text: str, options: SpeechOptions
) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Best-effort synthesis: (base64 audio, content type, error)."""
    if not options.generate_audio:
        return None, None, None
    try:
        speech = await ctx.text_to_speech.synthesize(text, options.voice_id, options.model_id)
    except Exception as e:
        logger.error(f"Reply synthesis failed: {str(e)}", error_type=type(e).__name__)
        return None, None, f"Speech synthesis failed: {str(e)}"
    return base64.b64encode(speech.audio).decode("ascii"), speech.content_type, None


@log_async_function_call()
async def create_chat(ctx: FlowContext, request: CreateChatRequest) -> CreateChatResponse:
    session_id = await ctx.sessions.create_session(
        system_instructions=request.system_instructions,
        generation_config=request.generation_config(),
    )
    return CreateChatResponse(session_id=session_id)


async def get_chat(ctx: FlowContext, session_id: str) -> SessionResponse:
    session = await ctx.sessions.load_session(session_id)
    return SessionResponse(
        session_id=session.id,
        created_at=session.created_at,
        last_active=session.last_active,
        config=session.config,
        history=session.history,
        message_count=len(session.history),
    )


@log_async_function_call()
async def send_text_message(ctx: FlowContext, session_id: str, request: TextMessageRequest) -> TextMessageResponse:
    """Run one chat turn for a text message, optionally speaking the reply."""
    documents = await _retrieve_for(ctx, request.message_text, request.retrieve_context)

    async with ctx.locks.hold(session_id):
        text_response = await ctx.executor.submit_messages(
            session_id,
            [request.message_text],
            system_instructions=request.system_instructions,
            generation_config=request.generation_config(),
            documents=documents,
        )

    audio, content_type, audio_error = await _synthesize_reply(ctx, text_response, request.speech)
    return TextMessageResponse(
        text_response=text_response,
        audio_response=audio,
        audio_response_content_type=content_type,
        audio_error=audio_error,
        sources=documents,
    )


@log_async_function_call()
async def send_speech_message(ctx: FlowContext, session_id: str, request: SpeechMessageRequest) -> SpeechMessageResponse:
    """Transcribe a voice message, run it as a chat turn, optionally speak the reply."""
    audio = decode_base64(request.base64_audio, "audio")
    transcript = await ctx.speech_to_text.transcribe(audio, request.content_type)
    if not transcript:
        raise InvalidInputError("No speech could be transcribed from the audio")

    documents = await _retrieve_for(ctx, transcript, request.retrieve_context)

    async with ctx.locks.hold(session_id):
        response = await ctx.executor.submit_messages(
            session_id,
            [transcript],
            system_instructions=request.system_instructions,
            generation_config=request.generation_config(),
            documents=documents,
        )

    audio_b64, content_type, audio_error = await _synthesize_reply(ctx, response, request.speech)
    return SpeechMessageResponse(
        transcript=transcript,
        response=response,
        audio_response=audio_b64,
        audio_response_content_type=content_type,
        audio_error=audio_error,
        sources=documents,
    )


@log_async_function_call()
async def delete_chat(ctx: FlowContext, session_id: str) -> DeleteChatResponse:
    async with ctx.locks.hold(session_id):
        await ctx.sessions.delete_session(session_id)
    return DeleteChatResponse(message="Session deleted successfully", session_id=session_id)


async def session_stats(ctx: FlowContext) -> SessionStatsResponse:
    ids = await ctx.store.list_ids()
    return SessionStatsResponse(total_sessions=len(ids))


@log_async_function_call()
async def get_text_from_speech(ctx: FlowContext, request: TranscriptionRequest) -> TranscriptionResponse:
    audio = decode_base64(request.base64_audio, "audio")
    text = await ctx.speech_to_text.transcribe(audio, request.content_type)
    return TranscriptionResponse(text=text)


@log_async_function_call()
async def get_speech_from_text(ctx: FlowContext, request: SynthesisRequest) -> SynthesisResponse:
    speech = await ctx.text_to_speech.synthesize(request.text, request.voice_id, request.model_id)
    return SynthesisResponse(
        base64_audio=base64.b64encode(speech.audio).decode("ascii"),
        content_type=speech.content_type,
    )


async def _index_pdf(ctx: FlowContext, source: Union[bytes, str], source_name: str) -> IndexPdfResponse:
    retriever = ctx.require_retriever()
    text = await extract_text(source)
    if not text:
        raise InvalidInputError("PDF contains no extractable text")

    documents = documents_from_text(text, source_name, ctx.chunking)
    count = await asyncio.to_thread(retriever.index, documents)
    logger.info("PDF indexed", source=source_name, chunks=count, characters=len(text))
    return IndexPdfResponse(chunks_indexed=count, source=source_name)


@log_async_function_call()
async def index_pdf_from_url(ctx: FlowContext, request: PdfUrlRequest) -> IndexPdfResponse:
    return await _index_pdf(ctx, request.url, request.url)


@log_async_function_call()
async def index_pdf_from_base64(ctx: FlowContext, request: PdfBase64Request) -> IndexPdfResponse:
    data = decode_base64(request.base64_pdf, "PDF")
    return await _index_pdf(ctx, data, request.source_name or "upload.pdf")


@log_async_function_call()
async def extract_text_from_pdf(ctx: FlowContext, request: PdfExtractRequest) -> PdfExtractResponse:
    if bool(request.url) == bool(request.base64_pdf):
        raise InvalidInputError("Provide exactly one of url or base64_pdf")
    source = request.url if request.url else decode_base64(request.base64_pdf, "PDF")
    return PdfExtractResponse(text=await extract_text(source))


@log_async_function_call()
async def retrieve_documents(ctx: FlowContext, request: RetrieveRequest) -> RetrieveResponse:
    retriever = ctx.require_retriever()
    documents = await asyncio.to_thread(retriever.retrieve, request.query)
    return RetrieveResponse(documents=documents)
