"""
Data model for Session, Turn and generation configuration.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from config import DEFAULT_SYSTEM_INSTRUCTIONS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Author of a turn."""
    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """One role-tagged message in a session history. Committed turns never change."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class GenerationConfig(BaseModel):
    """Parameters controlling model output."""
    max_output_tokens: int = Field(default=2048, ge=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    stop_sequences: List[str] = Field(default_factory=list)


class SessionConfig(BaseModel):
    """Configuration recorded when a session is created."""
    system_instructions: str = DEFAULT_SYSTEM_INSTRUCTIONS
    generation: GenerationConfig = Field(default_factory=GenerationConfig)


class Session(BaseModel):
    """Durable conversational state keyed by an opaque id."""
    id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)
    last_active: datetime = Field(default_factory=_utcnow)
    config: SessionConfig = Field(default_factory=SessionConfig)
    history: List[Turn] = Field(default_factory=list)

    def append_turn(self, role: Role, content: str) -> Turn:
        """Append a turn to the end of the history."""
        turn = Turn(role=role, content=content)
        self.history.append(turn)
        self.last_active = turn.timestamp
        return turn
