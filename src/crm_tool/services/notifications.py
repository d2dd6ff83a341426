"""Notification and cache-invalidation ports for the import session"""
import enum
import logging
from abc import ABC, abstractmethod
from typing import List

from src.crm_tool.schemas.csv_import import Notification

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notifier(ABC):
    @abstractmethod
    def notify(self, kind: NotificationKind, message: str) -> None:
        pass


class LogNotifier(Notifier):
    def notify(self, kind: NotificationKind, message: str) -> None:
        if kind == NotificationKind.ERROR:
            logger.error(message)
        elif kind == NotificationKind.WARNING:
            logger.warning(message)
        else:
            logger.info(message)


class CollectingNotifier(LogNotifier):
    """Keeps notifications so an API client can pick them up with the session state."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, kind: NotificationKind, message: str) -> None:
        super().notify(kind, message)
        self.notifications.append(Notification(kind=kind.value, message=message))

    def clear(self) -> None:
        self.notifications.clear()


class CacheInvalidator(ABC):
    @abstractmethod
    def invalidate(self, resource_key: str) -> None:
        pass


class NullCacheInvalidator(CacheInvalidator):
    def invalidate(self, resource_key: str) -> None:
        logger.debug(f"Cache invalidation requested for {resource_key}")


class CollectingCacheInvalidator(CacheInvalidator):
    """Records stale resource keys for the client to refetch."""

    def __init__(self):
        self.invalidated: List[str] = []

    def invalidate(self, resource_key: str) -> None:
        if resource_key not in self.invalidated:
            self.invalidated.append(resource_key)

    def clear(self) -> None:
        self.invalidated.clear()
