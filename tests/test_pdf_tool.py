"""
Unit tests for tools/pdf_tool.py - PDF extraction and chunking.
"""

import asyncio
import os
import sys
from unittest.mock import MagicMock, patch

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import InvalidInputError, ProviderUnavailableError
from models import ChunkingConfig
from tools.pdf_tool import chunk_text, documents_from_text, extract_text, extract_text_from_bytes, fetch_pdf
from tests.test_logger import test_logger

SAMPLE_TEXT = (
    "Robots sense the world. They plan a path. Motors execute the plan. "
    "Feedback corrects errors. Controllers run in loops. Sensors are noisy. "
    "Filters smooth the signal. Kinematics maps joints to poses. "
    "Dynamics adds forces. Learning tunes the policy."
)


def fake_pdf(*page_texts):
    pdf = MagicMock()
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    pdf.__enter__.return_value.pages = pages
    return pdf


class TestChunkText:
    """Test suite for chunk_text."""

    def setup_method(self):
        test_logger.log_section("TESTING: tools/pdf_tool.py - chunk_text")

    def test_chunks_respect_bounds_and_overlap(self):
        test_logger.log_test_start("pdf_tool.py", "chunk_text", "bounds_and_overlap")

        try:
            config = ChunkingConfig(min_length=40, max_length=80, overlap=10)
            chunks = chunk_text(SAMPLE_TEXT, config)

            assert len(chunks) > 1
            assert all(len(c) <= 80 for c in chunks)
            for previous, current in zip(chunks, chunks[1:]):
                assert current.startswith(previous[-10:])
            for sentence in ["Robots sense the world.", "Learning tunes the policy."]:
                assert any(sentence in c for c in chunks)

            test_logger.log_test_pass("pdf_tool.py", "chunk_text", "bounds_and_overlap", f"{len(chunks)} chunks")
        except Exception as e:
            test_logger.log_test_fail("pdf_tool.py", "chunk_text", "bounds_and_overlap", str(e))
            raise

    def test_chunks_reach_min_length_before_closing(self):
        config = ChunkingConfig(min_length=50, max_length=200, overlap=0)
        chunks = chunk_text(SAMPLE_TEXT, config)

        assert all(len(c) >= 50 for c in chunks[:-1])
        assert " ".join(chunks) == SAMPLE_TEXT

    def test_paragraph_splitter(self):
        text = "Para one.\n\nPara two is here.\n\n\nPara three."
        config = ChunkingConfig(min_length=5, max_length=200, splitter="paragraph", overlap=0)

        assert chunk_text(text, config) == ["Para one.", "Para two is here.", "Para three."]

    def test_long_unit_is_hard_split(self):
        text = " ".join(["word"] * 60)
        config = ChunkingConfig(min_length=10, max_length=100, overlap=0)

        chunks = chunk_text(text, config)

        assert len(chunks) >= 3
        assert all(len(c) <= 100 for c in chunks)
        assert sum(c.count("word") for c in chunks) == 60

    def test_short_tail_is_merged(self):
        text = "A" * 25 + ". Bb."
        config = ChunkingConfig(min_length=20, max_length=60, overlap=0)

        assert chunk_text(text, config) == ["A" * 25 + ". Bb."]

    def test_empty_text(self):
        assert chunk_text("", ChunkingConfig()) == []
        assert chunk_text("   \n\n ", ChunkingConfig()) == []

    def test_documents_from_text_tags_source(self):
        config = ChunkingConfig(min_length=40, max_length=80, overlap=10)
        docs = documents_from_text(SAMPLE_TEXT, "https://example.com/robots.pdf", config)

        assert [d.metadata["chunk_index"] for d in docs] == list(range(len(docs)))
        assert all(d.metadata["source"] == "https://example.com/robots.pdf" for d in docs)


class TestExtractText:
    """Test suite for PDF text extraction."""

    def setup_method(self):
        test_logger.log_section("TESTING: tools/pdf_tool.py - extraction")

    def test_rejects_non_pdf_bytes(self):
        with pytest.raises(InvalidInputError):
            extract_text_from_bytes(b"just some text")

    def test_merges_pages(self):
        test_logger.log_test_start("pdf_tool.py", "extract_text_from_bytes", "merge_pages")

        try:
            with patch("tools.pdf_tool.pdfplumber.open", return_value=fake_pdf("Page one.", None, "Page three.")):
                text = extract_text_from_bytes(b"%PDF-1.7 fake")

            assert text == "Page one.\n\nPage three."

            test_logger.log_test_pass("pdf_tool.py", "extract_text_from_bytes", "merge_pages")
        except Exception as e:
            test_logger.log_test_fail("pdf_tool.py", "extract_text_from_bytes", "merge_pages", str(e))
            raise

    def test_parser_failure_is_invalid_input(self):
        with patch("tools.pdf_tool.pdfplumber.open", side_effect=Exception("bad xref")):
            with pytest.raises(InvalidInputError):
                extract_text_from_bytes(b"%PDF-1.7 broken")

    def test_fetch_pdf(self):
        def handler(request):
            assert request.url == "https://example.com/doc.pdf"
            return httpx.Response(200, content=b"%PDF-1.4 body")

        async def run():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fetch_pdf("https://example.com/doc.pdf", client)

        assert asyncio.run(run()) == b"%PDF-1.4 body"

    def test_fetch_pdf_http_error(self):
        test_logger.log_test_start("pdf_tool.py", "fetch_pdf", "http_error")

        try:
            async def run():
                transport = httpx.MockTransport(lambda request: httpx.Response(404))
                async with httpx.AsyncClient(transport=transport) as client:
                    return await fetch_pdf("https://example.com/missing.pdf", client)

            with pytest.raises(ProviderUnavailableError):
                asyncio.run(run())

            test_logger.log_test_pass("pdf_tool.py", "fetch_pdf", "http_error")
        except Exception as e:
            test_logger.log_test_fail("pdf_tool.py", "fetch_pdf", "http_error", str(e))
            raise

    def test_extract_text_from_url(self):
        async def run():
            transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"%PDF-1.4 body"))
            async with httpx.AsyncClient(transport=transport) as client:
                return await extract_text("https://example.com/doc.pdf", client)

        with patch("tools.pdf_tool.pdfplumber.open", return_value=fake_pdf("Hello PDF")):
            assert asyncio.run(run()) == "Hello PDF"
