"""
Event Bus for PlayerHUD.

This module provides a simple pub/sub event system for decoupled communication
between the sync loop and whatever presents its results. The primary use case
is pushing each cycle's PublishedState to the status server.

Event types:
- nowplaying.state: A sync cycle finished and published a state
- nowplaying.session_bound: A media session was located and bound
- nowplaying.session_lost: The bound media session stopped answering

Usage:
    bus = EventBus()

    async def on_state(event: Event) -> None:
        if isinstance(event, NowPlayingEvent):
            print(event.state)

    await bus.subscribe("nowplaying.state", on_state)
    await bus.publish(NowPlayingEvent(state=Unavailable("no player")))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

from playerhud.core.state import PublishedState

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class NowPlayingEvent(Event):
    """Fired once per sync cycle with the state that cycle produced."""

    event_type: str = field(default="nowplaying.state", init=False)
    state: PublishedState | None = None
    changed: bool = True

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.event_type,
            "changed": self.changed,
        }
        if self.state is not None:
            result["state"] = self.state.to_dict()
        return result


@dataclass
class SessionBoundEvent(Event):
    """Fired when the locator picked a media session."""

    event_type: str = field(default="nowplaying.session_bound", init=False)
    service_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "service_name": self.service_name,
        }


@dataclass
class SessionLostEvent(Event):
    """Fired when the bound media session was dropped."""

    event_type: str = field(default="nowplaying.session_lost", init=False)
    service_name: str = ""
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        result = {
            "type": self.event_type,
            "service_name": self.service_name,
        }
        if self.error:
            result["error"] = self.error
        return result


def _matches(pattern: str, event_type: str) -> bool:
    """Exact match, "*" for everything, or a "prefix.*" wildcard."""
    if pattern in ("*", event_type):
        return True
    return pattern.endswith(".*") and event_type.startswith(pattern[:-1])


class EventBus:
    """
    Async pub/sub bus between the sync loop and its presenters.

    Handlers run one after another in subscription order. A handler that
    raises is logged and skipped; the remaining handlers still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, pattern: str, handler: EventHandler) -> None:
        """
        Register ``handler`` for events matching ``pattern``.

        Args:
            pattern: Event type, "*", or a "prefix.*" wildcard.
            handler: Coroutine function receiving the event.
        """
        async with self._lock:
            self._handlers.setdefault(pattern, []).append(handler)
        logger.debug("Subscribed %s to %s", handler, pattern)

    async def unsubscribe(self, pattern: str, handler: EventHandler) -> bool:
        """Remove a registration. Returns False if it did not exist."""
        async with self._lock:
            handlers = self._handlers.get(pattern, [])
            if handler not in handlers:
                return False
            handlers.remove(handler)
            if not handlers:
                del self._handlers[pattern]
        logger.debug("Unsubscribed %s from %s", handler, pattern)
        return True

    async def publish(self, event: Event) -> int:
        """
        Deliver ``event`` to every matching handler.

        Returns:
            Number of handlers that completed without raising.
        """
        async with self._lock:
            targets = [
                handler
                for pattern, handlers in self._handlers.items()
                if _matches(pattern, event.event_type)
                for handler in handlers
            ]

        delivered = 0
        for handler in targets:
            try:
                await handler(event)
            except Exception:
                logger.exception("Handler %s failed on %s", handler, event.event_type)
            else:
                delivered += 1
        return delivered
