"""Notification and window surfaces driven by the offline cache coordinator.

The coordinator never talks to a platform directly; it shows notifications
through a NotificationSurface and opens pages through a ClientWindows
implementation. The logging implementations here are the defaults for
headless clients.
"""

import logging
from abc import ABC, abstractmethod

from .models import Notification

logger = logging.getLogger(__name__)


class NotificationSurface(ABC):
    """Displays system notifications."""

    @abstractmethod
    async def show(self, notification: Notification) -> None:
        """Display a notification.

        Raises:
            Exception: If the platform refuses the notification
        """
        pass


class ClientWindows(ABC):
    """Focuses or opens application windows."""

    @abstractmethod
    async def focus(self, url: str) -> bool:
        """Focus an already open window showing url.

        Returns:
            True if a window was focused
        """
        pass

    @abstractmethod
    async def open(self, url: str) -> None:
        """Open a new window at url."""
        pass


class LoggingNotificationSurface(NotificationSurface):
    """Records notifications in the log and keeps them for inspection."""

    def __init__(self) -> None:
        self.shown: list[Notification] = []

    async def show(self, notification: Notification) -> None:
        self.shown.append(notification)
        logger.info(f"Notification: {notification.title} - {notification.body}")


class LoggingClientWindows(ClientWindows):
    """Tracks open urls in memory; nothing is rendered."""

    def __init__(self) -> None:
        self.open_urls: list[str] = []
        self.focused: str | None = None

    async def focus(self, url: str) -> bool:
        if url in self.open_urls:
            self.focused = url
            logger.info(f"Focused window at {url}")
            return True
        return False

    async def open(self, url: str) -> None:
        self.open_urls.append(url)
        self.focused = url
        logger.info(f"Opened window at {url}")
