"""
Tests for PlayerLocator.

The locator must never raise: a failed or empty enumeration is reported as
None and logged.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeBus, method_return
from playerhud.bus.locator import MPRIS_PREFIX, PlayerLocator
from playerhud.core import DiscoveryError


class TestPlayerLocator:
    """Tests for PlayerLocator class."""

    def test_creation(self) -> None:
        """Locator can be created with default values."""
        locator = PlayerLocator(MagicMock())
        assert locator.prefix == MPRIS_PREFIX
        assert locator.timeout == 2.0

    @pytest.mark.asyncio
    async def test_locate_first_match(self, fake_bus: FakeBus) -> None:
        """First name with the MPRIS prefix wins, in bus order."""
        fake_bus.names = [
            "org.freedesktop.DBus",
            "org.mpris.MediaPlayer2.spotify",
            ":1.42",
            "org.mpris.MediaPlayer2.vlc",
        ]
        locator = PlayerLocator(fake_bus)

        assert await locator.locate() == "org.mpris.MediaPlayer2.spotify"

    @pytest.mark.asyncio
    async def test_list_players_keeps_bus_order(self, fake_bus: FakeBus) -> None:
        fake_bus.names = [
            "org.mpris.MediaPlayer2.vlc",
            "org.gnome.Shell",
            "org.mpris.MediaPlayer2.firefox.instance_1_23",
        ]
        locator = PlayerLocator(fake_bus)

        assert await locator.list_players() == [
            "org.mpris.MediaPlayer2.vlc",
            "org.mpris.MediaPlayer2.firefox.instance_1_23",
        ]

    @pytest.mark.asyncio
    async def test_prefix_needs_the_dot(self, fake_bus: FakeBus) -> None:
        """The interface-like name itself is not a session."""
        fake_bus.names = ["org.mpris.MediaPlayer2"]
        locator = PlayerLocator(fake_bus)

        assert await locator.locate() is None

    @pytest.mark.asyncio
    async def test_no_media_sessions(self, fake_bus: FakeBus) -> None:
        """Zero registered sessions is a normal None."""
        locator = PlayerLocator(fake_bus)

        assert await locator.locate() is None
        assert fake_bus.count("ListNames") == 1

    @pytest.mark.asyncio
    async def test_error_reply(self, fake_bus: FakeBus) -> None:
        fake_bus.discovery_down = True
        locator = PlayerLocator(fake_bus)

        with pytest.raises(DiscoveryError, match="NoReply"):
            await locator.list_names()
        assert await locator.locate() is None

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """A hanging bus surfaces as None after the timeout, not a hang."""
        async def never_answers(message: object) -> None:
            await asyncio.sleep(3600)

        bus = MagicMock()
        bus.call = never_answers
        locator = PlayerLocator(bus, timeout=0.05)

        with pytest.raises(DiscoveryError, match="timed out"):
            await locator.list_names()
        assert await locator.locate() is None

    @pytest.mark.asyncio
    async def test_call_raises(self) -> None:
        bus = MagicMock()
        bus.call = AsyncMock(side_effect=EOFError("connection closed"))
        locator = PlayerLocator(bus)

        assert await locator.locate() is None

    @pytest.mark.asyncio
    async def test_malformed_reply(self) -> None:
        bus = MagicMock()
        bus.call = AsyncMock(return_value=method_return("not-a-list"))
        locator = PlayerLocator(bus)

        with pytest.raises(DiscoveryError, match="malformed"):
            await locator.list_names()

    @pytest.mark.asyncio
    async def test_list_names_message(self) -> None:
        """ListNames goes to the bus daemon without arguments."""
        bus = MagicMock()
        bus.call = AsyncMock(return_value=method_return([]))
        locator = PlayerLocator(bus)

        await locator.list_names()

        message = bus.call.await_args.args[0]
        assert message.destination == "org.freedesktop.DBus"
        assert message.path == "/org/freedesktop/DBus"
        assert message.interface == "org.freedesktop.DBus"
        assert message.member == "ListNames"
        assert not message.body

    @pytest.mark.asyncio
    async def test_custom_prefix(self, fake_bus: FakeBus) -> None:
        fake_bus.names = ["org.mpris.MediaPlayer2.vlc", "org.mpris.MediaPlayer2.mpd"]
        locator = PlayerLocator(fake_bus, prefix="org.mpris.MediaPlayer2.mpd")

        assert await locator.locate() == "org.mpris.MediaPlayer2.mpd"
