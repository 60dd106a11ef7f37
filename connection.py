"""
Provider clients for OpenAI, Gemini, Qdrant and Cohere.

Clients are created once per process from the validated AppConfig and
handed to the flows; SDK exceptions propagate unchanged from here.
"""

import time
from typing import Optional

import cohere
import google.generativeai as genai
from openai import AsyncOpenAI
from qdrant_client import QdrantClient

from config import AppConfig
from logger import get_logger

logger = get_logger(__name__)


class QdrantConnectionError(Exception):
    """Qdrant is not configured or cannot be reached."""
    pass


class GeminiConnectionError(Exception):
    """Gemini is not configured."""
    pass


class Connections:
    """Lazily constructed, process-wide provider clients."""

    def __init__(self, config: AppConfig):
        self.config = config
        self._openai_client: Optional[AsyncOpenAI] = None
        self._qdrant_client: Optional[QdrantClient] = None
        self._cohere_client: Optional[cohere.Client] = None
        self._gemini_configured: bool = False

    def get_openai_client(self) -> AsyncOpenAI:
        """Get or create the async OpenAI client."""
        if self._openai_client is not None:
            return self._openai_client

        if not self.config.openai_api_key:
            raise ValueError("OPENAI_API_KEY not set")

        self._openai_client = AsyncOpenAI(api_key=self.config.openai_api_key)
        logger.info("[OPENAI] Client created")
        return self._openai_client

    def configure_gemini(self) -> bool:
        """Configure the Gemini SDK."""
        if self._gemini_configured:
            return True

        if not self.config.gemini_api_key:
            raise GeminiConnectionError("GEMINI_API_KEY not set")

        genai.configure(api_key=self.config.gemini_api_key)
        self._gemini_configured = True
        logger.info("[GEMINI] Configured successfully")
        return True

    def get_qdrant_client(self) -> QdrantClient:
        """
        Get or create the Qdrant client.

        Does NOT cache failed clients.
        """
        if self._qdrant_client is not None:
            return self._qdrant_client

        url = self.config.qdrant_url
        if not url:
            raise QdrantConnectionError("QDRANT_URL environment variable is not set")

        logger.info(f"[QDRANT] Creating client with url={url[:50]}")
        self._qdrant_client = QdrantClient(
            url=url,
            api_key=self.config.qdrant_api_key or None,
            timeout=30
        )
        return self._qdrant_client

    def get_cohere_client(self) -> cohere.Client:
        """Get or create the Cohere client used for embeddings."""
        if self._cohere_client is not None:
            return self._cohere_client

        if not self.config.cohere_api_key:
            raise ValueError("COHERE_API_KEY not set")

        self._cohere_client = cohere.Client(api_key=self.config.cohere_api_key)
        logger.info("[COHERE] Client created")
        return self._cohere_client

    def test_qdrant_connection(self) -> dict:
        """
        Test Qdrant connection by calling get_collections().

        Returns raw result or raw exception info.
        """
        try:
            client = self.get_qdrant_client()
            start = time.time()
            result = client.get_collections()
            duration = (time.time() - start) * 1000

            collections = [c.name for c in result.collections]
            logger.info(f"[QDRANT] Connection OK, collections: {collections}, duration: {duration:.2f}ms")
            return {
                "success": True,
                "collections": collections,
                "duration_ms": duration
            }

        except Exception as e:
            error_info = {
                "success": False,
                "exception_type": type(e).__name__,
                "exception_message": str(e),
            }
            logger.error(f"[QDRANT] FAILED: {error_info}")
            return error_info

    def health_check(self) -> dict:
        """Report configuration and reachability of each provider."""
        status = {
            "openai": {"healthy": bool(self.config.openai_api_key), "details": "Configured" if self.config.openai_api_key else "OPENAI_API_KEY not set"},
        }

        if self.config.chat_provider == "gemini":
            try:
                self.configure_gemini()
                status["gemini"] = {"healthy": True, "details": "Configured"}
            except Exception as e:
                status["gemini"] = {
                    "healthy": False,
                    "details": {"exception_type": type(e).__name__, "message": str(e)}
                }

        if self.config.retrieval_enabled:
            qdrant_result = self.test_qdrant_connection()
            status["qdrant"] = {
                "healthy": qdrant_result.get("success", False),
                "details": qdrant_result
            }

        return status
