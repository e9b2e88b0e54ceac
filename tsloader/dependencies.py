"""Dependency notification side channel.

Every loaded module URL is published as a DependencyMessage. A supervising
process (e.g. a watch-mode runner) receives them through a
ParentChannelReporter attached to an inherited file descriptor.
"""

import logging
import os
from collections.abc import Callable
from typing import TextIO

from .models import DependencyMessage

logger = logging.getLogger(__name__)

DependencyHandler = Callable[[DependencyMessage], None]


class DependencyBus:
    """Publishes dependency messages to subscribers.

    Subscribers are called synchronously. Errors in handlers are isolated
    and logged so a broken listener never fails a module load.
    """

    def __init__(self) -> None:
        self._subscribers: list[DependencyHandler] = []

    def subscribe(self, handler: DependencyHandler) -> None:
        self._subscribers.append(handler)

    @property
    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    def publish(self, message: DependencyMessage) -> None:
        for handler in self._subscribers:
            try:
                handler(message)
            except Exception:
                logger.exception(f"Error in dependency handler {getattr(handler, '__name__', handler)!r}")


class ParentChannelReporter:
    """Writes each message as one JSON line to a stream owned by the parent."""

    def __init__(self, stream: TextIO):
        self.stream = stream

    @classmethod
    def from_fd(cls, fd: int) -> "ParentChannelReporter":
        return cls(os.fdopen(fd, "w", encoding="utf-8", buffering=1))

    def __call__(self, message: DependencyMessage) -> None:
        self.stream.write(message.model_dump_json() + "\n")
        self.stream.flush()
