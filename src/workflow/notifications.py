"""Notification resolution and delivery.

Resolution is pure: a transition's notification template plus a value map
become one ``ResolvedNotification`` per recipient division. Delivery is the
job of an injected ``Notifier``; the engine itself never performs I/O.
"""

import logging
import re
import threading
import uuid
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from src.workflow.models import TransitionNotification

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


class ResolvedNotification(BaseModel):
    """A rendered message addressed to one division."""

    division: str
    message: str


class DeliveredNotification(BaseModel):
    """A notification as recorded by a notifier."""

    id: str = Field(default_factory=lambda: f"notif_{uuid.uuid4().hex[:12]}")
    division: str
    message: str
    project_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_read: bool = False


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """
    Substitute every ``{name}`` token whose name is in ``values``.

    Unknown tokens are left verbatim so a missing value is visible in the
    delivered text instead of silently disappearing.

    Example:
        >>> render_template("'{projectName}' by {actorUsername}", {"projectName": "Gedung A"})
        "'Gedung A' by {actorUsername}"
    """

    def substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in values or values[name] is None:
            logger.debug("No value for placeholder '%s'", name)
            return match.group(0)
        return str(values[name])

    return PLACEHOLDER_PATTERN.sub(substitute, template)


def resolve_notification(
    notification: Optional[TransitionNotification],
    values: Mapping[str, Any],
) -> list[ResolvedNotification]:
    """Render ``notification`` for each of its recipient divisions."""
    if notification is None:
        return []
    recipients = notification.recipients()
    if not recipients:
        return []
    message = render_template(notification.message, values)
    return [ResolvedNotification(division=division, message=message) for division in recipients]


class Notifier(ABC):
    """Delivers resolved notifications to their divisions."""

    @abstractmethod
    def deliver(
        self,
        notifications: Sequence[ResolvedNotification],
        project_id: Optional[str] = None,
    ) -> None:
        """Deliver every notification; may raise on delivery failure."""

    def discard_project(self, project_id: str) -> int:
        """Forget notifications about a deleted project; returns how many."""
        return 0


class LoggingNotifier(Notifier):
    """Notifier that only writes each notification to the log."""

    def deliver(self, notifications, project_id=None):
        for notification in notifications:
            logger.info(
                "Notify %s: %s",
                notification.division,
                notification.message,
                extra={"project_id": project_id, "division": notification.division},
            )


class InMemoryNotifier(Notifier):
    """Keeps the newest ``limit`` notifications in memory.

    Args:
        limit: Maximum number of retained notifications; oldest are dropped
    """

    def __init__(self, limit: int = 300):
        self._items: deque[DeliveredNotification] = deque(maxlen=limit)
        self._lock = threading.Lock()

    def deliver(self, notifications, project_id=None):
        with self._lock:
            for notification in notifications:
                self._items.append(
                    DeliveredNotification(
                        division=notification.division,
                        message=notification.message,
                        project_id=project_id,
                    )
                )
        logger.debug("%d notification(s) stored for project %s", len(notifications), project_id)

    def all(self) -> list[DeliveredNotification]:
        """Stored notifications, newest first."""
        with self._lock:
            return list(reversed(self._items))

    def for_division(self, division: str) -> list[DeliveredNotification]:
        return [n for n in self.all() if n.division == division]

    def discard_project(self, project_id: str) -> int:
        with self._lock:
            kept = [n for n in self._items if n.project_id != project_id]
            removed = len(self._items) - len(kept)
            self._items.clear()
            self._items.extend(kept)
        logger.debug("%d notification(s) discarded for project %s", removed, project_id)
        return removed
