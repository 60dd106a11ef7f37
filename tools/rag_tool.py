"""
Document indexing and retrieval against the vector database.

Text is embedded with Cohere and stored in a Qdrant collection. Indexing
uses ``search_document`` embeddings, retrieval embeds the query with
``search_query`` and returns the best-scoring chunks as RetrievedDocument.
Both clients are synchronous; async callers run these methods in a thread.
"""

import time
import uuid
from typing import Any, Dict, List, Optional, Sequence

import cohere
from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from errors import InvalidInputError, ProviderUnavailableError
from logger import get_logger
from models import RetrievedDocument

logger = get_logger(__name__)

# Cohere accepts at most 96 texts per embed call
EMBED_BATCH_SIZE = 96
# embed-english-v3.0 dimensions
DEFAULT_VECTOR_SIZE = 1024
MAX_EMBED_CHARS = 8000


class RAGTool:
    """Indexes and retrieves supporting documents."""

    def __init__(
        self,
        qdrant_client: QdrantClient,
        cohere_client: cohere.Client,
        collection_name: str = "pdf_chunks",
        embedding_model: str = "embed-english-v3.0",
        top_k: int = 5,
        score_threshold: Optional[float] = 0.3,
        vector_size: int = DEFAULT_VECTOR_SIZE,
    ):
        self.qdrant_client = qdrant_client
        self.cohere_client = cohere_client
        self.collection_name = collection_name
        self.embedding_model = embedding_model
        self.top_k = max(1, min(50, top_k))
        self.score_threshold = score_threshold
        self.vector_size = vector_size

        logger.info(
            "RAGTool initialized",
            collection=self.collection_name,
            embedding_model=self.embedding_model
        )

    def embed(self, texts: Sequence[str], input_type: str) -> List[List[float]]:
        """Embed texts in batches, preserving order."""
        vectors: List[List[float]] = []
        for start in range(0, len(texts), EMBED_BATCH_SIZE):
            batch = [t[:MAX_EMBED_CHARS] for t in texts[start:start + EMBED_BATCH_SIZE]]
            start_time = time.time()
            try:
                response = self.cohere_client.embed(
                    texts=batch,
                    model=self.embedding_model,
                    input_type=input_type
                )
            except Exception as e:
                logger.provider_call("cohere", "embed", False, batch_size=len(batch), error=str(e))
                raise ProviderUnavailableError("cohere", "embedding generation failed", str(e)) from e

            embeddings = list(response.embeddings or [])
            if len(embeddings) != len(batch):
                raise ProviderUnavailableError(
                    "cohere",
                    f"expected {len(batch)} embeddings, received {len(embeddings)}"
                )
            vectors.extend(embeddings)
            logger.provider_call(
                "cohere", "embed", True,
                batch_size=len(batch),
                duration_ms=round((time.time() - start_time) * 1000, 2)
            )
        return vectors

    def ensure_collection(self) -> None:
        """Create the collection with cosine distance if it does not exist."""
        try:
            if self.qdrant_client.collection_exists(self.collection_name):
                return
            self.qdrant_client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE)
            )
        except Exception as e:
            logger.error(f"Failed to ensure collection: {str(e)}", collection=self.collection_name)
            raise ProviderUnavailableError("qdrant", f"cannot prepare collection '{self.collection_name}'", str(e)) from e

        logger.info(f"Created collection '{self.collection_name}'", vector_size=self.vector_size)

    def index(self, documents: Sequence[RetrievedDocument]) -> int:
        """
        Embed and upsert documents.

        Returns:
            Number of documents stored.
        """
        documents = [d for d in documents if d.text and d.text.strip()]
        if not documents:
            return 0

        self.ensure_collection()
        vectors = self.embed([d.text for d in documents], input_type="search_document")

        points = [
            PointStruct(
                id=str(uuid.uuid4()),
                vector=vector,
                payload={"text": doc.text, "metadata": doc.metadata}
            )
            for doc, vector in zip(documents, vectors)
        ]

        start_time = time.time()
        try:
            self.qdrant_client.upsert(collection_name=self.collection_name, points=points)
        except Exception as e:
            logger.error(f"Qdrant upsert failed: {str(e)}", collection=self.collection_name)
            raise ProviderUnavailableError("qdrant", "upsert failed", str(e)) from e

        logger.info(
            "Documents indexed",
            collection=self.collection_name,
            count=len(points),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )
        return len(points)

    def retrieve(self, query: str) -> List[RetrievedDocument]:
        """Return the documents most similar to the query, best first."""
        if not query or not query.strip():
            raise InvalidInputError("Retrieval query cannot be empty")

        vector = self.embed([query.strip()], input_type="search_query")[0]

        start_time = time.time()
        try:
            response = self.qdrant_client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=self.top_k,
                with_payload=True,
                score_threshold=self.score_threshold
            )
        except Exception as e:
            logger.error(f"Vector search failed: {type(e).__name__}: {str(e)}", collection=self.collection_name)
            raise ProviderUnavailableError("qdrant", "vector search failed", str(e)) from e

        documents = self._to_documents(response.points or [])
        logger.vector_query(
            collection=self.collection_name,
            results_count=len(documents),
            duration_ms=(time.time() - start_time) * 1000
        )
        return documents

    def _to_documents(self, points: List[Any]) -> List[RetrievedDocument]:
        documents = []
        for point in points:
            payload: Dict[str, Any] = getattr(point, "payload", None) or {}
            text = payload.get("text") or ""
            if not text:
                continue
            documents.append(RetrievedDocument(
                text=text,
                metadata=payload.get("metadata") or {},
                score=float(getattr(point, "score", 0.0) or 0.0)
            ))
        documents.sort(key=lambda d: d.score or 0.0, reverse=True)
        return documents
