"""
Player discovery.

MPRIS players claim a well-known name starting with ``org.mpris.MediaPlayer2.``
on the session bus. The locator asks the bus daemon for all registered names
and picks the first one carrying that prefix.

Selection order is whatever ``ListNames`` returns. With several players
running the choice is unspecified and may differ between polls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from dbus_fast import Message, MessageType

from playerhud.bus.connection import describe_error_reply
from playerhud.core import DiscoveryError, NoPeerFound

logger = logging.getLogger(__name__)

DBUS_SERVICE = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
DBUS_INTERFACE = "org.freedesktop.DBus"

MPRIS_PREFIX = "org.mpris.MediaPlayer2."

DEFAULT_TIMEOUT_SECONDS = 2.0


class PlayerLocator:
    """Finds a media-session name on the bus."""

    def __init__(
        self,
        bus: Any,
        *,
        prefix: str = MPRIS_PREFIX,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """
        Args:
            bus: Connected bus exposing ``async call(Message) -> Message``.
            prefix: Service-name prefix identifying media sessions.
            timeout: Bound for the ListNames call, in seconds.
        """
        self._bus = bus
        self.prefix = prefix
        self.timeout = timeout

    async def list_names(self) -> list[str]:
        """
        Enumerate every name registered on the bus.

        Raises:
            DiscoveryError: On timeout, error reply or malformed reply.
        """
        message = Message(
            destination=DBUS_SERVICE,
            path=DBUS_PATH,
            interface=DBUS_INTERFACE,
            member="ListNames",
        )

        try:
            reply = await asyncio.wait_for(self._bus.call(message), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise DiscoveryError(f"timed out after {self.timeout:.1f}s") from e
        except Exception as e:
            raise DiscoveryError(str(e) or e.__class__.__name__) from e

        if reply is None or reply.message_type != MessageType.METHOD_RETURN:
            raise DiscoveryError(describe_error_reply(reply))

        names = reply.body[0] if reply.body else None
        if not isinstance(names, list):
            raise DiscoveryError("malformed ListNames reply")

        return [name for name in names if isinstance(name, str)]

    async def list_players(self) -> list[str]:
        """All media-session names, in bus enumeration order."""
        return [name for name in await self.list_names() if name.startswith(self.prefix)]

    def _select(self, players: list[str]) -> str:
        if not players:
            raise NoPeerFound(f"no name with prefix {self.prefix!r}")
        if len(players) > 1:
            logger.debug("Several media sessions registered, using first: %s", players)
        return players[0]

    async def locate(self) -> str | None:
        """
        Pick a media session to bind.

        Returns:
            A service name, or None if the lookup failed or found nothing.
            Never raises; None is an expected outcome.
        """
        try:
            return self._select(await self.list_players())
        except DiscoveryError as e:
            logger.warning("ListNames failed: %s", e)
        except NoPeerFound as e:
            logger.debug("No media session found: %s", e)
        return None
