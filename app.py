"""
FastAPI application exposing the chat, speech and PDF flows.

Configuration is validated at startup; missing credentials stop the server
before it serves any request. Per-request failures are returned as JSON
error payloads and never take the process down.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import flows
from config import validate_config_on_startup, get_config
from connection import Connections
from errors import ChatBackendError
from flows import FlowContext, build_flow_context
from logger import get_logger
from models import (
    CreateChatRequest, CreateChatResponse,
    TextMessageRequest, TextMessageResponse,
    SpeechMessageRequest, SpeechMessageResponse,
    SessionResponse, DeleteChatResponse, SessionStatsResponse,
    TranscriptionRequest, TranscriptionResponse,
    SynthesisRequest, SynthesisResponse,
    PdfUrlRequest, PdfBase64Request, PdfExtractRequest, PdfExtractResponse,
    IndexPdfResponse, RetrieveRequest, RetrieveResponse
)

logger = get_logger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration and build the shared flow context."""
    logger.info("=" * 60)
    logger.info("Starting Voice & PDF Chat API")
    logger.info("=" * 60)

    if getattr(app.state, "flow_context", None) is None:
        # Raises ValueError on missing credentials; startup aborts.
        config = validate_config_on_startup()
        connections = Connections(config)
        app.state.connections = connections
        app.state.flow_context = build_flow_context(config, connections)
        logger.info("[STARTUP] Flow context ready", chat_provider=config.chat_provider)

    yield

    logger.info("Shutting down")


def get_flow_context(request: Request) -> FlowContext:
    return request.app.state.flow_context


def create_app(context: Optional[FlowContext] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        context: Pre-built flow context. When omitted it is built from the
            environment during startup.
    """
    app = FastAPI(
        title="Voice & PDF Chat API",
        description="Persistent chat sessions with speech and PDF retrieval",
        version=APP_VERSION,
        lifespan=lifespan
    )
    app.state.flow_context = context
    app.state.connections = None

    cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
    cors_origins = [origin.strip() for origin in cors_origins if origin.strip()]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatBackendError)
    async def chat_error_handler(request: Request, exc: ChatBackendError):
        """Map backend errors to their status codes."""
        logger.warning(
            f"Request failed: {exc.message}",
            path=request.url.path,
            error_type=type(exc).__name__,
            status=exc.status_code
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.message,
                "detail": exc.detail,
                "status_code": exc.status_code
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all uncaught exceptions."""
        logger.error(
            f"Unhandled exception: {str(exc)}",
            path=request.url.path,
            method=request.method,
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(exc) if os.getenv("DEBUG", "").lower() == "true" else None,
                "status_code": 500
            }
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests with timing."""
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        response = await call_next(request)
        logger.request(
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
            request_id=request_id
        )
        return response

    @app.get("/")
    async def root():
        return {
            "message": "Voice & PDF Chat API",
            "version": APP_VERSION,
            "status": "running",
            "docs": "/docs"
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Report provider configuration and retrieval readiness."""
        ctx: Optional[FlowContext] = request.app.state.flow_context
        connections: Optional[Connections] = request.app.state.connections
        services = connections.health_check() if connections is not None else {}
        all_healthy = ctx is not None and all(s.get("healthy", False) for s in services.values())

        return {
            "status": "healthy" if all_healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": services,
            "retrieval_ready": ctx is not None and ctx.retriever is not None,
        }

    @app.post("/sessions", response_model=CreateChatResponse, status_code=status.HTTP_201_CREATED)
    async def create_session(body: CreateChatRequest, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.create_chat(ctx, body)

    @app.get("/sessions/stats", response_model=SessionStatsResponse)
    async def get_session_stats(ctx: FlowContext = Depends(get_flow_context)):
        return await flows.session_stats(ctx)

    @app.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.get_chat(ctx, session_id)

    @app.delete("/sessions/{session_id}", response_model=DeleteChatResponse)
    async def delete_session(session_id: str, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.delete_chat(ctx, session_id)

    @app.post("/sessions/{session_id}/messages", response_model=TextMessageResponse)
    async def send_text_message(session_id: str, body: TextMessageRequest,
                                ctx: FlowContext = Depends(get_flow_context)):
        return await flows.send_text_message(ctx, session_id, body)

    @app.post("/sessions/{session_id}/speech", response_model=SpeechMessageResponse)
    async def send_speech_message(session_id: str, body: SpeechMessageRequest,
                                  ctx: FlowContext = Depends(get_flow_context)):
        return await flows.send_speech_message(ctx, session_id, body)

    @app.post("/speech/transcribe", response_model=TranscriptionResponse)
    async def transcribe(body: TranscriptionRequest, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.get_text_from_speech(ctx, body)

    @app.post("/speech/synthesize", response_model=SynthesisResponse)
    async def synthesize(body: SynthesisRequest, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.get_speech_from_text(ctx, body)

    @app.post("/documents/index/url", response_model=IndexPdfResponse)
    async def index_pdf_url(body: PdfUrlRequest, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.index_pdf_from_url(ctx, body)

    @app.post("/documents/index/base64", response_model=IndexPdfResponse)
    async def index_pdf_base64(body: PdfBase64Request, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.index_pdf_from_base64(ctx, body)

    @app.post("/documents/extract", response_model=PdfExtractResponse)
    async def extract_pdf_text(body: PdfExtractRequest, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.extract_text_from_pdf(ctx, body)

    @app.post("/documents/retrieve", response_model=RetrieveResponse)
    async def retrieve(body: RetrieveRequest, ctx: FlowContext = Depends(get_flow_context)):
        return await flows.retrieve_documents(ctx, body)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower()
    )
