"""Offline-first cache coordinator for the whisper client.

Plays the role of the app's service worker as an explicit state machine.
Each cache generation moves INSTALLING -> ACTIVE -> REDUNDANT, driven by
five events:

    install            pre-cache a manifest into a new generation (all or nothing)
    activate           delete every other generation, then serve the new one
    fetch              cache first, network on a miss
    push               show a system notification (fire and forget)
    notificationclick  focus or open a window at the notification url

At most one generation is live at a time. Transitions are serialised by a
lock; a fetch racing a transition reads either the old or the new
generation, and a generation deleted under it simply misses and falls back
to the network.
"""

import asyncio
import logging
from typing import Any

from ..errors import CacheInstallError, OfflineError, StorageFailure, ValidationError
from .clients import (
    ClientWindows,
    LoggingClientWindows,
    LoggingNotificationSurface,
    NotificationSurface,
)
from .models import CacheManifest, GenerationState, Notification, PushMessage
from .network import Fetcher
from .storage import GenerationStorage

logger = logging.getLogger(__name__)


class OfflineCacheCoordinator:
    """Decides cache-vs-network for every client request.

    Example:
        coordinator = OfflineCacheCoordinator(storage, HttpFetcher(origin))

        await coordinator.install(manifest)   # warm the new generation
        await coordinator.activate()          # drop older generations
        body = await coordinator.fetch("/")   # served from cache when offline
    """

    EVENTS = ("install", "activate", "fetch", "push", "notificationclick")

    def __init__(
        self,
        storage: GenerationStorage,
        fetcher: Fetcher,
        notifier: NotificationSurface | None = None,
        windows: ClientWindows | None = None,
    ) -> None:
        """Initialize coordinator, resuming the generation active in storage.

        Args:
            storage: Persistent generation storage
            fetcher: Async network fetch used on cache misses and installs
            notifier: Surface for push notifications
            windows: Window manager for notification clicks
        """
        self.storage = storage
        self.fetcher = fetcher
        self.notifier = notifier or LoggingNotificationSurface()
        self.windows = windows or LoggingClientWindows()

        self.states: dict[str, GenerationState] = {}
        self.installed: str | None = None  # Installed, waiting to activate
        self.active: str | None = storage.active_generation()
        if self.active is not None:
            self.states[self.active] = GenerationState.ACTIVE
            logger.debug(f"Resumed active cache generation {self.active}")

        self._transition = asyncio.Lock()

    def state(self, generation: str) -> GenerationState | None:
        """Lifecycle state of a generation seen by this coordinator."""
        return self.states.get(generation)

    async def install(self, manifest: CacheManifest) -> str:
        """Pre-cache every manifest resource into a new generation.

        Installing the generation that is already active is a no-op.
        Reinstalling the generation already waiting to activate replaces
        its entries on success and leaves it untouched on failure.

        Returns:
            Name of the installed generation

        Raises:
            CacheInstallError: If any resource fails to fetch or the
                generation cannot be stored; nothing is written and the
                active generation keeps serving
        """
        name = manifest.generation
        async with self._transition:
            if name == self.active:
                logger.debug(f"Generation {name} already active, skipping install")
                return name

            self.states[name] = GenerationState.INSTALLING
            logger.info(
                f"Installing cache generation {name} "
                f"({len(manifest.resources)} resources)"
            )

            payloads = await asyncio.gather(
                *(self.fetcher(key) for key in manifest.resources),
                return_exceptions=True,
            )
            for key, payload in zip(manifest.resources, payloads):
                if isinstance(payload, BaseException):
                    self._abandon_install(name)
                    logger.error(f"Install of {name} failed fetching {key}: {payload}")
                    raise CacheInstallError(
                        f"Failed to fetch {key} while installing {name}",
                        generation=name,
                        key=key,
                        original_error=payload,
                    ) from payload

            try:
                entries = dict(zip(manifest.resources, payloads))
                self.storage.put_generation(name, entries)
            except StorageFailure as e:
                self._abandon_install(name)
                raise CacheInstallError(
                    f"Failed to store generation {name}",
                    generation=name,
                    original_error=e,
                ) from e

            if self.installed is not None and self.installed != name:
                # A newer install supersedes one still waiting
                self.states[self.installed] = GenerationState.REDUNDANT
            self.installed = name
            logger.info(f"Installed cache generation {name}")
            return name

    def _abandon_install(self, name: str) -> None:
        # A failed reinstall keeps the earlier complete copy waiting
        if name != self.installed:
            self.states[name] = GenerationState.REDUNDANT

    async def activate(self) -> str:
        """Make the installed generation the live one.

        Every stored generation with a different name is deleted before the
        new one starts serving.

        Returns:
            Name of the active generation

        Raises:
            RuntimeError: If no generation is installed and none is active
        """
        async with self._transition:
            if self.installed is None:
                if self.active is None:
                    raise RuntimeError("No installed cache generation to activate")
                return self.active

            new = self.installed
            for name in self.storage.list_generations():
                if name != new:
                    removed = self.storage.delete_generation(name)
                    self.states[name] = GenerationState.REDUNDANT
                    logger.info(
                        f"Deleted stale cache generation {name} ({removed} entries)"
                    )

            self.storage.set_state(new, GenerationState.ACTIVE)
            self.active = new
            self.installed = None
            self.states[new] = GenerationState.ACTIVE
            logger.info(f"Activated cache generation {new}")
            return new

    async def fetch(self, key: str) -> bytes:
        """Serve a request from the active generation or the network.

        A successful network response is cached in the active generation.

        Raises:
            OfflineError: If the key is not cached and the network fails
        """
        generation = self.active
        if generation is not None:
            payload = self.storage.get(generation, key)
            if payload is not None:
                logger.debug(f"Cache hit for {key} in {generation}")
                return payload

        try:
            payload = await self.fetcher(key)
        except Exception as e:
            logger.debug(f"Network fetch failed for {key}: {e}")
            raise OfflineError(key, e) from e

        # Only cache into the generation that is still live after the await
        if generation is not None and generation == self.active:
            try:
                self.storage.put(generation, key, payload)
            except StorageFailure as e:
                logger.warning(f"Could not cache {key} in {generation}: {e}")
        return payload

    async def push(self, payload: bytes | str | dict[str, Any]) -> Notification | None:
        """Show a system notification for a push message.

        Fire and forget: a malformed payload or a display failure is logged
        and the notification is not retried.

        Returns:
            The notification shown, or None if nothing was displayed
        """
        try:
            message = PushMessage.from_payload(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring push message: {e}")
            return None

        notification = message.to_notification()
        try:
            await self.notifier.show(notification)
        except Exception as e:
            logger.warning(
                f"Failed to display notification '{notification.title}': {e}"
            )
            return None
        return notification

    async def notification_click(self, notification: Notification) -> str:
        """Focus a window showing the notification url, or open one.

        Returns:
            The url that was focused or opened
        """
        url = notification.url
        if not await self.windows.focus(url):
            await self.windows.open(url)
        return url

    async def dispatch(self, event: str, payload: Any = None) -> Any:
        """Route a named client event to its handler.

        Raises:
            ValueError: If the event name is unknown
        """
        if event == "install":
            return await self.install(payload)
        if event == "activate":
            return await self.activate()
        if event == "fetch":
            return await self.fetch(payload)
        if event == "push":
            return await self.push(payload)
        if event == "notificationclick":
            return await self.notification_click(payload)
        raise ValueError(f"Unknown event: {event}")
