"""
Metadata property reads against a bound media session.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from dbus_fast import Message, MessageType, Variant

from playerhud.bus.connection import describe_error_reply
from playerhud.core import FetchError

logger = logging.getLogger(__name__)

MPRIS_PATH = "/org/mpris/MediaPlayer2"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"
METADATA_PROPERTY = "Metadata"

# Shorter than discovery; this runs every cycle
DEFAULT_TIMEOUT_SECONDS = 1.5


class MetadataFetcher:
    """Reads ``org.mpris.MediaPlayer2.Player.Metadata`` from a session."""

    def __init__(self, bus: Any, *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._bus = bus
        self.timeout = timeout

    async def fetch(self, service: str) -> dict[str, Any]:
        """
        Read the metadata mapping of ``service``.

        Args:
            service: Bus name of the media session.

        Returns:
            The ``a{sv}`` mapping (values are still Variants).

        Raises:
            FetchError: On timeout, error reply, vanished peer or a reply
                that is not a variant holding ``a{sv}``. The caller must
                drop its binding to ``service``.
        """
        try:
            message = Message(
                destination=service,
                path=MPRIS_PATH,
                interface=PROPERTIES_INTERFACE,
                member="Get",
                signature="ss",
                body=[PLAYER_INTERFACE, METADATA_PROPERTY],
            )
        except Exception as e:
            raise FetchError(f"invalid service name {service!r}: {e}") from e

        try:
            reply = await asyncio.wait_for(self._bus.call(message), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(f"timed out after {self.timeout:.1f}s") from e
        except Exception as e:
            raise FetchError(str(e) or e.__class__.__name__) from e

        if reply is None or reply.message_type != MessageType.METHOD_RETURN:
            raise FetchError(describe_error_reply(reply))

        value = reply.body[0] if reply.body else None
        if not isinstance(value, Variant) or value.signature != "a{sv}":
            raise FetchError("malformed Metadata reply")

        return value.value
