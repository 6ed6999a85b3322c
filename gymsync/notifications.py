from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .errors import NormalizedError


logger = logging.getLogger(__name__)

PLACEMENT_TOP = "top"
COLOR_ERROR = "red.500"
COLOR_SUCCESS = "green.500"


@dataclass(frozen=True)
class Notification:
    title: str
    placement: str = PLACEMENT_TOP
    bg_color: str = COLOR_ERROR

    @property
    def is_error(self) -> bool:
        return self.bg_color == COLOR_ERROR


def error_notification(error: NormalizedError | str) -> Notification:
    title = error.title if isinstance(error, NormalizedError) else error
    return Notification(title=title, bg_color=COLOR_ERROR)


def success_notification(title: str) -> Notification:
    return Notification(title=title, bg_color=COLOR_SUCCESS)


class Notifier(Protocol):
    def show(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Notifier for headless runs: every notification becomes a log record."""

    def show(self, notification: Notification) -> None:
        level = logging.WARNING if notification.is_error else logging.INFO
        logger.log(level, "Notification (%s): %s", notification.placement, notification.title)


class RecordingNotifier:
    def __init__(self) -> None:
        self.shown: list[Notification] = []

    def show(self, notification: Notification) -> None:
        self.shown.append(notification)

    @property
    def titles(self) -> list[str]:
        return [item.title for item in self.shown]
