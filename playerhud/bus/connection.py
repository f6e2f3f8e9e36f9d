"""
Session bus connection.

One connection to the user's D-Bus session bus is opened at startup and kept
for the lifetime of the process. Failing to connect is fatal: without a bus
nothing else can work, so there is no retry.
"""

from __future__ import annotations

import logging
from typing import Any

from dbus_fast import BusType, Message, MessageType
from dbus_fast.aio import MessageBus

from playerhud.core import BusConnectionError

logger = logging.getLogger(__name__)


def describe_error_reply(reply: Message | None) -> str:
    """Human readable text for a failed method call reply."""
    if reply is None:
        return "no reply"
    if reply.message_type != MessageType.ERROR:
        return "unexpected reply"
    detail: Any = reply.body[0] if reply.body else ""
    if detail:
        return f"{reply.error_name}: {detail}"
    return str(reply.error_name or "unknown error")


class BusConnector:
    """Owns the session bus connection."""

    def __init__(self, bus_type: BusType = BusType.SESSION) -> None:
        self._bus_type = bus_type
        self._bus: MessageBus | None = None

    async def connect(self) -> MessageBus:
        """
        Open the bus connection.

        Returns:
            The connected MessageBus.

        Raises:
            BusConnectionError: If the bus is unreachable or refuses us.
        """
        if self._bus is not None:
            return self._bus

        try:
            self._bus = await MessageBus(bus_type=self._bus_type).connect()
        except Exception as e:
            raise BusConnectionError(str(e) or e.__class__.__name__) from e

        logger.info("Connected to %s bus as %s", self._bus_type.name.lower(), self._bus.unique_name)
        return self._bus

    @property
    def bus(self) -> MessageBus:
        if self._bus is None:
            raise BusConnectionError("not connected")
        return self._bus

    @property
    def connected(self) -> bool:
        return self._bus is not None and self._bus.connected

    async def wait_for_disconnect(self) -> None:
        """Return when the connection drops (raises if it dropped with an error)."""
        await self.bus.wait_for_disconnect()

    def disconnect(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._bus is None:
            return
        bus, self._bus = self._bus, None
        bus.disconnect()
        logger.info("Disconnected from %s bus", self._bus_type.name.lower())
