"""
PDF text extraction and chunking.

PDFs are read with pdfplumber from raw bytes or fetched from a URL with
httpx. Extracted text is split into overlapping chunks sized for embedding.
"""

import asyncio
import io
import re
import time
from typing import List, Optional, Union

import httpx
import pdfplumber

from errors import InvalidInputError, ProviderUnavailableError
from logger import get_logger
from models import ChunkingConfig, RetrievedDocument

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF"
FETCH_TIMEOUT_SECONDS = 30.0
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
PARAGRAPH_BOUNDARY = re.compile(r"\n\s*\n")


async def fetch_pdf(url: str, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """Download a PDF. A shared client may be passed in; otherwise one is opened per call."""
    start_time = time.time()
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=FETCH_TIMEOUT_SECONDS, follow_redirects=True) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.provider_call("pdf-source", "fetch", False, url=url, error=str(e))
        raise ProviderUnavailableError("pdf-source", f"cannot fetch {url}", str(e)) from e

    logger.provider_call(
        "pdf-source", "fetch", True,
        url=url,
        size_bytes=len(response.content),
        duration_ms=round((time.time() - start_time) * 1000, 2)
    )
    return response.content


def extract_text_from_bytes(data: bytes) -> str:
    """Extract the text of every page, pages joined by newlines."""
    if not data or not data.lstrip().startswith(PDF_MAGIC):
        raise InvalidInputError("Payload is not a PDF document")

    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.warning(f"PDF parsing failed: {type(e).__name__}: {str(e)}")
        raise InvalidInputError("PDF could not be parsed", str(e)) from e

    return "\n".join(pages).strip()


async def extract_text(source: Union[bytes, str], client: Optional[httpx.AsyncClient] = None) -> str:
    """Extract text from PDF bytes or from a PDF URL."""
    if isinstance(source, str):
        data = await fetch_pdf(source, client)
    else:
        data = source
    text = await asyncio.to_thread(extract_text_from_bytes, data)
    logger.debug("PDF text extracted", characters=len(text))
    return text


def _split_units(text: str, splitter: str) -> List[str]:
    if splitter == "paragraph":
        paragraphs = PARAGRAPH_BOUNDARY.split(text)
        return [re.sub(r"[ \t]+", " ", p).strip() for p in paragraphs if p.strip()]
    flat = re.sub(r"\s+", " ", text).strip()
    return [s for s in SENTENCE_BOUNDARY.split(flat) if s]


def _hard_split(unit: str, limit: int) -> List[str]:
    """Break a unit longer than limit, preferring whitespace."""
    pieces = []
    while len(unit) > limit:
        cut = unit.rfind(" ", 0, limit + 1)
        if cut <= 0:
            cut = limit
        pieces.append(unit[:cut].rstrip())
        unit = unit[cut:].lstrip()
    if unit:
        pieces.append(unit)
    return pieces


def chunk_text(text: str, config: Optional[ChunkingConfig] = None) -> List[str]:
    """
    Split text into chunks of at most ``max_length`` characters.

    Units (sentences or paragraphs) accumulate until a chunk reaches
    ``min_length`` or the next unit would overflow ``max_length``. Every
    chunk after the first begins with the last ``overlap`` characters of the
    chunk before it. A short tail is folded into the previous chunk when the
    result still fits.
    """
    config = config or ChunkingConfig()
    sep = "\n\n" if config.splitter == "paragraph" else " "
    piece_limit = max(1, config.max_length - config.overlap - len(sep))

    def join(tail: str, body: str) -> str:
        return f"{tail}{sep}{body}" if tail else body

    def overlap_of(chunk: str) -> str:
        return chunk[-config.overlap:] if config.overlap else ""

    chunks: List[str] = []
    tail = ""
    body = ""

    for unit in _split_units(text or "", config.splitter):
        for piece in _hard_split(unit, piece_limit):
            candidate = f"{body}{sep}{piece}" if body else piece
            if body and len(join(tail, candidate)) > config.max_length:
                closed = join(tail, body)
                chunks.append(closed)
                tail = overlap_of(closed)
                candidate = piece
            body = candidate

            current = join(tail, body)
            if len(current) >= config.min_length:
                chunks.append(current)
                tail = overlap_of(current)
                body = ""

    if body:
        current = join(tail, body)
        if chunks and len(current) < config.min_length and len(chunks[-1]) + len(sep) + len(body) <= config.max_length:
            chunks[-1] = f"{chunks[-1]}{sep}{body}"
        else:
            chunks.append(current)

    return chunks


def documents_from_text(text: str, source: str, config: Optional[ChunkingConfig] = None) -> List[RetrievedDocument]:
    """Chunk extracted text into documents tagged with their source and position."""
    chunks = chunk_text(text, config)
    return [
        RetrievedDocument(text=chunk, metadata={"source": source, "chunk_index": idx})
        for idx, chunk in enumerate(chunks)
    ]
