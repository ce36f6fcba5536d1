"""Request bodies and response envelope for the HTTP API."""

from typing import Any

from pydantic import BaseModel, Field, model_validator


class WhisperCreate(BaseModel):
    content: str
    emotion: str | None = None
    zone: str | None = None
    ttl_seconds: float | None = None
    is_ai_generated: bool = False


class ReactionCreate(BaseModel):
    guest_id: str
    emoji: str


class EmbeddingUpsert(BaseModel):
    vector: list[float]


class SearchRequest(BaseModel):
    """Similarity search by raw vector or by free text (exactly one)."""

    vector: list[float] | None = None
    text: str | None = None
    top_k: int = Field(default=5)
    zone: str | None = None
    emotion: str | None = None

    @model_validator(mode="after")
    def check_query(self) -> "SearchRequest":
        if (self.vector is None) == (self.text is None):
            raise ValueError("Provide exactly one of vector or text")
        return self


def envelope(data: Any = None, message: str = "ok", success: bool = True) -> dict:
    """Wrap a payload as {success, message, data}."""
    return {"success": success, "message": message, "data": data}
