"""
Data models for retrieved documents and PDF chunking.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class RetrievedDocument(BaseModel):
    """A unit of text plus free-form metadata used as supporting context."""
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[float] = None


class ChunkingConfig(BaseModel):
    """Bounds used when splitting extracted PDF text into chunks."""
    min_length: int = Field(default=1000, ge=1)
    max_length: int = Field(default=2000, ge=1)
    splitter: str = Field(default="sentence", pattern="^(sentence|paragraph)$")
    overlap: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def check_bounds(self) -> "ChunkingConfig":
        if self.min_length > self.max_length:
            raise ValueError("min_length must not exceed max_length")
        if self.overlap * 2 >= self.max_length:
            raise ValueError("overlap must be less than half of max_length")
        return self
