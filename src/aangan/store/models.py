"""Data models for whisper storage."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

# Reaction set offered by the feed UI
DEFAULT_ALLOWED_EMOJIS = ("❤️", "😢", "😮", "🙌")

# Column widths shared with the schema
MAX_EMOTION_LENGTH = 32
MAX_ZONE_LENGTH = 64
MAX_GUEST_ID_LENGTH = 64
MAX_EMOJI_LENGTH = 8


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_db_timestamp(value: datetime) -> str:
    """Serialize a datetime for storage.

    Always emits microseconds and a UTC offset so that string comparison in
    SQL matches chronological order.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime."""
    if value is None:
        return None
    return datetime.fromisoformat(value)


@dataclass
class Whisper:
    """Anonymous short post, optionally tagged and time-limited.

    Attributes:
        id: Monotonically assigned identifier
        content: Whisper text (never empty)
        emotion: Optional free-form emotion tag
        zone: Optional location/context tag
        is_ai_generated: Whether the whisper was written by the AI companion
        expires_at: When the whisper stops being visible, None for never
        created_at: Server-side creation time
    """

    id: int
    content: str
    emotion: str | None
    zone: str | None
    is_ai_generated: bool
    expires_at: datetime | None
    created_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the whisper is logically deleted at ``now``."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "emotion": self.emotion,
            "zone": self.zone,
            "is_ai_generated": self.is_ai_generated,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Reaction:
    """Emoji reaction left by an anonymous guest.

    Attributes:
        id: Reaction identifier
        whisper_id: Whisper the reaction belongs to
        guest_id: Opaque anonymous identifier
        emoji: Emoji code from the allowed set
        created_at: When the reaction was recorded
    """

    id: int
    whisper_id: int
    guest_id: str
    emoji: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "whisper_id": self.whisper_id,
            "guest_id": self.guest_id,
            "emoji": self.emoji,
            "created_at": self.created_at.isoformat(),
        }
