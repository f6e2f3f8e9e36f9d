"""
Shared fixtures: a scripted stand-in for the D-Bus session bus.
"""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import MagicMock

import pytest
from dbus_fast import MessageType, Variant


def method_return(*body: Any) -> MagicMock:
    """Fake successful reply message."""
    reply = MagicMock()
    reply.message_type = MessageType.METHOD_RETURN
    reply.body = list(body)
    return reply


def error_reply(error_name: str, text: str = "") -> MagicMock:
    """Fake error reply message."""
    reply = MagicMock()
    reply.message_type = MessageType.ERROR
    reply.error_name = error_name
    reply.body = [text] if text else []
    return reply


def metadata_variant(
    title: str | None = None,
    artists: list[str] | None = None,
    art_url: str | None = None,
) -> Variant:
    """Metadata property value as a player would send it."""
    fields: dict[str, Variant] = {
        "mpris:trackid": Variant("o", "/org/mpris/MediaPlayer2/Track/1"),
    }
    if title is not None:
        fields["xesam:title"] = Variant("s", title)
    if artists is not None:
        fields["xesam:artist"] = Variant("as", artists)
    if art_url is not None:
        fields["mpris:artUrl"] = Variant("s", art_url)
    return Variant("a{sv}", fields)


class FakeBus:
    """
    Answers ListNames and Properties.Get like a session bus would.

    - ``names``: what ListNames returns
    - ``players``: service name -> Metadata variant
    - ``hang``: service names whose Get never answers
    - ``discovery_down``: make ListNames fail with an error reply
    """

    def __init__(self) -> None:
        self.names: list[str] = ["org.freedesktop.DBus", ":1.1"]
        self.players: dict[str, Variant] = {}
        self.hang: set[str] = set()
        self.discovery_down = False
        self.calls: list[tuple[str, str | None]] = []

    def add_player(self, service: str, metadata: Variant) -> None:
        self.names.append(service)
        self.players[service] = metadata

    def remove_player(self, service: str) -> None:
        self.names.remove(service)
        self.players.pop(service, None)

    def count(self, member: str) -> int:
        return sum(1 for called, _ in self.calls if called == member)

    async def call(self, message: Any) -> MagicMock:
        self.calls.append((message.member, message.destination))

        if message.member == "ListNames":
            if self.discovery_down:
                return error_reply("org.freedesktop.DBus.Error.NoReply", "bus is busy")
            return method_return(list(self.names))

        if message.member == "Get":
            if message.destination in self.hang:
                await asyncio.sleep(3600)
            if message.destination not in self.players:
                return error_reply(
                    "org.freedesktop.DBus.Error.ServiceUnknown",
                    f"The name {message.destination} was not provided by any .service files",
                )
            return method_return(self.players[message.destination])

        return error_reply("org.freedesktop.DBus.Error.UnknownMethod")


@pytest.fixture
def fake_bus() -> FakeBus:
    return FakeBus()
