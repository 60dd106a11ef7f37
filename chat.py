"""
Session lifecycle and chat turn execution.

SessionManager creates, loads and deletes sessions on top of the store.
ChatTurnExecutor appends user messages to a stored session, asks the
language model for a reply to each one in order, and writes every committed
turn back through the store.
"""

import time
import uuid
from typing import List, Optional, Sequence

from config import DEFAULT_SYSTEM_INSTRUCTIONS
from errors import ChatBackendError, InvalidInputError, ModelInvocationError, SessionNotFoundError
from logger import get_logger
from models import GenerationConfig, RetrievedDocument, Role, Session, SessionConfig
from session_store import FileSessionStore
from tools import LanguageModel

logger = get_logger(__name__)


class SessionManager:
    """Creates, loads and deletes sessions."""

    def __init__(self, store: FileSessionStore, default_system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS):
        self.store = store
        self.default_system_instructions = default_system_instructions

    async def create_session(
        self,
        system_instructions: Optional[str] = None,
        generation_config: Optional[GenerationConfig] = None,
    ) -> str:
        """Persist a new empty session and return its id."""
        session = Session(
            id=str(uuid.uuid4()),
            config=SessionConfig(
                system_instructions=system_instructions or self.default_system_instructions,
                generation=generation_config or GenerationConfig(),
            ),
        )
        await self.store.save(session)
        logger.session_event(
            "created",
            session.id,
            max_output_tokens=session.config.generation.max_output_tokens,
            temperature=session.config.generation.temperature
        )
        return session.id

    async def load_session(self, session_id: str) -> Session:
        session = await self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def delete_session(self, session_id: str) -> None:
        await self.store.delete(session_id)
        logger.session_event("deleted", session_id)


class ChatTurnExecutor:
    """Runs chat turns against a stored session."""

    def __init__(self, store: FileSessionStore, model: LanguageModel):
        self.store = store
        self.model = model

    async def submit_messages(
        self,
        session_id: str,
        messages: Sequence[str],
        system_instructions: Optional[str] = None,
        generation_config: Optional[GenerationConfig] = None,
        documents: Optional[Sequence[RetrievedDocument]] = None,
    ) -> str:
        """
        Send messages to a session in order and return the replies.

        Each message is appended as a user turn and persisted, then the model
        is called with the whole history and the reply is appended and
        persisted before the next message is sent. Instructions and
        generation config default to the session's own configuration.

        Args:
            session_id: Existing session id
            messages: User messages, processed strictly in order
            system_instructions: Instructions for this call only
            generation_config: Generation parameters for this call only
            documents: Supporting documents for every message in this call

        Returns:
            Replies joined by newlines, with surrounding whitespace removed.

        Raises:
            SessionNotFoundError: No session with that id.
            ModelInvocationError: The model failed or gave no text. The user
                turn for that message stays in the store; later messages are
                not sent.
            SessionPersistenceError: A turn could not be written.
        """
        if not messages:
            raise InvalidInputError("At least one message is required")

        session = await self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        instructions = system_instructions or session.config.system_instructions
        config = generation_config or session.config.generation
        docs: List[RetrievedDocument] = list(documents or [])

        logger.info(
            "Submitting messages",
            session_id=session_id,
            message_count=len(messages),
            documents=len(docs),
            history_length=len(session.history)
        )

        replies: List[str] = []
        for idx, message in enumerate(messages):
            session.append_turn(Role.USER, message)
            await self.store.save(session)

            reply = await self._invoke_model(session, instructions, config, docs, idx)

            session.append_turn(Role.ASSISTANT, reply)
            await self.store.save(session)
            replies.append(reply)

        return "\n".join(replies).strip()

    async def _invoke_model(
        self,
        session: Session,
        instructions: str,
        config: GenerationConfig,
        docs: List[RetrievedDocument],
        idx: int,
    ) -> str:
        start_time = time.time()
        try:
            reply = await self.model.generate(list(session.history), instructions, config, docs)
        except ChatBackendError:
            raise
        except Exception as e:
            logger.error(f"Model invocation failed: {str(e)}", session_id=session.id, message_index=idx)
            raise ModelInvocationError(f"Chat model {self.model.name} failed", str(e)) from e

        if not reply or not reply.strip():
            logger.warning("Model returned no text", session_id=session.id, message_index=idx)
            raise ModelInvocationError(f"Chat model {self.model.name} returned no usable text")

        logger.debug(
            "Turn completed",
            session_id=session.id,
            message_index=idx,
            reply_length=len(reply),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )
        return reply
