"""
Unit tests for session_store.py - file-backed session persistence.
"""

import asyncio
import os
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import InvalidInputError, SessionDecodeError, SessionNotFoundError, SessionPersistenceError
from models import GenerationConfig, Role, Session, SessionConfig
from session_store import FileSessionStore
from tests.test_logger import test_logger


def make_session(session_id="abc-123"):
    session = Session(
        id=session_id,
        config=SessionConfig(
            system_instructions="You are a pirate.",
            generation=GenerationConfig(max_output_tokens=256, temperature=0.2, stop_sequences=["END"])
        )
    )
    session.append_turn(Role.USER, "Hello")
    session.append_turn(Role.ASSISTANT, "Ahoy!")
    return session


class TestFileSessionStore:
    """Test suite for FileSessionStore."""

    def setup_method(self):
        test_logger.log_section("TESTING: session_store.py - FileSessionStore")

    def test_save_then_get_round_trip(self, store):
        test_logger.log_test_start("session_store.py", "save/get", "round_trip")

        try:
            session = make_session()
            asyncio.run(store.save(session))
            loaded = asyncio.run(store.get(session.id))

            assert loaded == session
            assert [(t.role, t.content) for t in loaded.history] == [
                (Role.USER, "Hello"), (Role.ASSISTANT, "Ahoy!")
            ]
            assert loaded.config.generation.stop_sequences == ["END"]

            test_logger.log_test_pass("session_store.py", "save/get", "round_trip", "History and config preserved")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "save/get", "round_trip", str(e))
            raise

    def test_get_missing_returns_none(self, store):
        test_logger.log_test_start("session_store.py", "get", "absent")

        try:
            assert asyncio.run(store.get("never-saved")) is None

            test_logger.log_test_pass("session_store.py", "get", "absent", "Absent id returns None")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "get", "absent", str(e))
            raise

    def test_delete_then_get_and_second_delete(self, store):
        test_logger.log_test_start("session_store.py", "delete", "delete_then_get")

        try:
            session = make_session()
            asyncio.run(store.save(session))
            asyncio.run(store.delete(session.id))

            assert asyncio.run(store.get(session.id)) is None
            with pytest.raises(SessionNotFoundError):
                asyncio.run(store.delete(session.id))

            test_logger.log_test_pass("session_store.py", "delete", "delete_then_get", "Second delete raises NotFound")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "delete", "delete_then_get", str(e))
            raise

    def test_save_creates_directory(self, tmp_path):
        test_logger.log_test_start("session_store.py", "save", "creates_directory")

        try:
            base = tmp_path / "nested" / "sessions"
            store = FileSessionStore(base)
            asyncio.run(store.save(make_session()))

            assert (base / "abc-123.json").is_file()

            test_logger.log_test_pass("session_store.py", "save", "creates_directory")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "save", "creates_directory", str(e))
            raise

    def test_corrupted_record_is_decode_error(self, store):
        test_logger.log_test_start("session_store.py", "get", "corrupted_record")

        try:
            store.base_dir.mkdir(parents=True)
            (store.base_dir / "broken.json").write_text("{not json", encoding="utf-8")

            with pytest.raises(SessionDecodeError):
                asyncio.run(store.get("broken"))

            test_logger.log_test_pass("session_store.py", "get", "corrupted_record", "Distinct from absence")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "get", "corrupted_record", str(e))
            raise

    def test_record_with_foreign_id_is_decode_error(self, store):
        asyncio.run(store.save(make_session("first")))
        os.rename(store.base_dir / "first.json", store.base_dir / "second.json")

        with pytest.raises(SessionDecodeError):
            asyncio.run(store.get("second"))

    def test_non_utf8_record_is_decode_error(self, store):
        test_logger.log_test_start("session_store.py", "get", "non_utf8_record")

        try:
            asyncio.run(store.save(make_session("abc")))
            (store.base_dir / "abc.json").write_bytes(b'{"id": "abc", "history": "\xff\xfe"}')

            with pytest.raises(SessionDecodeError):
                asyncio.run(store.get("abc"))

            test_logger.log_test_pass("session_store.py", "get", "non_utf8_record")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "get", "non_utf8_record", str(e))
            raise

    @pytest.mark.parametrize("bad_id",["../etc/passwd", "a/b", "", "x" * 200, "has space"])
    def test_malformed_ids_rejected(self, store, bad_id):
        with pytest.raises(InvalidInputError):
            asyncio.run(store.get(bad_id))

    def test_failed_save_keeps_previous_record(self, store):
        test_logger.log_test_start("session_store.py", "save", "atomic_replace")

        try:
            original = make_session()
            asyncio.run(store.save(original))

            updated = original.model_copy(deep=True)
            updated.append_turn(Role.USER, "More")

            with patch("session_store.os.replace", side_effect=OSError("disk full")):
                with pytest.raises(SessionPersistenceError):
                    asyncio.run(store.save(updated))

            assert asyncio.run(store.get(original.id)) == original
            leftovers = [p.name for p in store.base_dir.iterdir() if p.name.endswith(".tmp")]
            assert leftovers == []

            test_logger.log_test_pass("session_store.py", "save", "atomic_replace", "Old record intact, temp removed")
        except Exception as e:
            test_logger.log_test_fail("session_store.py", "save", "atomic_replace", str(e))
            raise

    def test_overwrite_replaces_full_record(self, store):
        session = make_session()
        asyncio.run(store.save(session))
        session.append_turn(Role.USER, "Second question")
        asyncio.run(store.save(session))

        loaded = asyncio.run(store.get(session.id))
        assert len(loaded.history) == 3
        assert loaded.history[-1].content == "Second question"

    def test_list_ids(self, store):
        assert asyncio.run(store.list_ids()) == []

        asyncio.run(store.save(make_session("b-session")))
        asyncio.run(store.save(make_session("a-session")))

        assert asyncio.run(store.list_ids()) == ["a-session", "b-session"]
