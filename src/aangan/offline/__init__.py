"""Offline-first client cache for aangan."""

from .coordinator import OfflineCacheCoordinator
from .models import CacheManifest, GenerationState, Notification, PushMessage
from .storage import GenerationStorage

__all__ = [
    "CacheManifest",
    "GenerationState",
    "GenerationStorage",
    "Notification",
    "OfflineCacheCoordinator",
    "PushMessage",
]
