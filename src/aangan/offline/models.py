"""Data models for the offline cache coordinator."""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ValidationError

DEFAULT_NOTIFICATION_TITLE = "New Notification"
DEFAULT_NOTIFICATION_BODY = "You have a new notification"
DEFAULT_NOTIFICATION_ICON = "/icons/icon-192x192.png"
DEFAULT_CLIENT_URL = "/"


class GenerationState(str, Enum):
    """Lifecycle of a cache generation."""

    INSTALLING = "installing"
    ACTIVE = "active"
    REDUNDANT = "redundant"


@dataclass(frozen=True)
class CacheManifest:
    """Versioned set of resource keys pre-cached at install time.

    Args:
        name: Cache name prefix (e.g., "whisperverse")
        version: Version label bumped when served content changes
        resources: Resource keys fetched during install
    """

    name: str
    version: str
    resources: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate manifest."""
        if not self.name or not self.name.strip():
            raise ValueError("name cannot be empty")
        if not str(self.version).strip():
            raise ValueError("version cannot be empty")
        if any(not key or not key.strip() for key in self.resources):
            raise ValueError("resource keys cannot be empty")
        # Accept lists from config files
        object.__setattr__(self, "resources", tuple(dict.fromkeys(self.resources)))

    @property
    def generation(self) -> str:
        """Generation name, unique per name, version and resource set."""
        digest = hashlib.sha256(
            "\n".join(sorted(self.resources)).encode("utf-8")
        ).hexdigest()
        return f"{self.name}-v{self.version}-{digest[:8]}"


@dataclass
class Notification:
    """System notification shown for a push message."""

    title: str
    body: str
    icon: str = DEFAULT_NOTIFICATION_ICON
    badge: str = DEFAULT_NOTIFICATION_ICON
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.data.get("url") or DEFAULT_CLIENT_URL


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


@dataclass
class PushMessage:
    """Structured push payload: title, body and an optional target url."""

    title: str
    body: str
    url: str | None = None
    icon: str | None = None

    @classmethod
    def from_payload(cls, payload: bytes | str | dict[str, Any]) -> "PushMessage":
        """Parse a push payload.

        Missing title or body fall back to generic text. Fields that are
        not non-empty strings count as missing.

        Raises:
            ValidationError: If the payload is not a JSON object
        """
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as e:
                raise ValidationError(f"Invalid push payload: {e}", e) from e
        if not isinstance(payload, dict):
            raise ValidationError("Push payload must be a JSON object")

        url = _text(payload.get("url"))
        if url is None and isinstance(payload.get("data"), dict):
            url = _text(payload["data"].get("url"))

        return cls(
            title=_text(payload.get("title")) or DEFAULT_NOTIFICATION_TITLE,
            body=_text(payload.get("body")) or DEFAULT_NOTIFICATION_BODY,
            url=url,
            icon=_text(payload.get("icon")),
        )

    def to_notification(self) -> Notification:
        return Notification(
            title=self.title,
            body=self.body,
            icon=self.icon or DEFAULT_NOTIFICATION_ICON,
            data={"url": self.url or DEFAULT_CLIENT_URL},
        )
