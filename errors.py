"""
Error taxonomy shared by the session store, chat executor, provider tools
and flows.

Each error carries the HTTP status the API layer reports it with.
"""

from typing import Optional


class ChatBackendError(Exception):
    """Base class for all errors raised by the chat backend."""

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class SessionNotFoundError(ChatBackendError):
    """No persisted session exists for the requested id."""

    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidInputError(ChatBackendError):
    """Malformed request payload (bad base64, unsupported audio type, ...)."""

    status_code = 400


class ModelInvocationError(ChatBackendError):
    """The language model call failed or returned no usable text."""

    status_code = 502


class ProviderUnavailableError(ChatBackendError):
    """Transport, auth or API failure from an external collaborator."""

    status_code = 503

    def __init__(self, provider: str, message: str, detail: Optional[str] = None):
        super().__init__(f"{provider}: {message}", detail)
        self.provider = provider


class SessionPersistenceError(ChatBackendError):
    """A session record could not be read from or written to the store."""

    status_code = 500


class SessionDecodeError(SessionPersistenceError):
    """A session record exists but its contents cannot be decoded."""

    def __init__(self, session_id: str, detail: Optional[str] = None):
        super().__init__(f"Session record is corrupted: {session_id}", detail)
        self.session_id = session_id
