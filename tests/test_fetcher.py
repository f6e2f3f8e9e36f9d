"""
Tests for MetadataFetcher.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from dbus_fast import Variant

from conftest import FakeBus, metadata_variant, method_return
from playerhud.bus.fetcher import MetadataFetcher
from playerhud.core import FetchError

SPOTIFY = "org.mpris.MediaPlayer2.spotify"


class TestMetadataFetcher:
    """Tests for MetadataFetcher class."""

    def test_creation(self) -> None:
        fetcher = MetadataFetcher(MagicMock())
        assert fetcher.timeout == 1.5

    @pytest.mark.asyncio
    async def test_fetch(self, fake_bus: FakeBus) -> None:
        fake_bus.add_player(SPOTIFY, metadata_variant("Song", ["A"], "https://x/a.jpg"))
        fetcher = MetadataFetcher(fake_bus)

        blob = await fetcher.fetch(SPOTIFY)

        assert blob["xesam:title"].value == "Song"
        assert blob["xesam:artist"].value == ["A"]
        assert blob["mpris:artUrl"].value == "https://x/a.jpg"

    @pytest.mark.asyncio
    async def test_get_message(self) -> None:
        """Properties.Get(Player, Metadata) on the MPRIS object path."""
        bus = MagicMock()
        bus.call = AsyncMock(return_value=method_return(metadata_variant("Song")))
        fetcher = MetadataFetcher(bus)

        await fetcher.fetch(SPOTIFY)

        message = bus.call.await_args.args[0]
        assert message.destination == SPOTIFY
        assert message.path == "/org/mpris/MediaPlayer2"
        assert message.interface == "org.freedesktop.DBus.Properties"
        assert message.member == "Get"
        assert message.signature == "ss"
        assert message.body == ["org.mpris.MediaPlayer2.Player", "Metadata"]

    @pytest.mark.asyncio
    async def test_vanished_peer(self, fake_bus: FakeBus) -> None:
        fetcher = MetadataFetcher(fake_bus)

        with pytest.raises(FetchError, match="ServiceUnknown"):
            await fetcher.fetch("org.mpris.MediaPlayer2.gone")

    @pytest.mark.asyncio
    async def test_timeout(self, fake_bus: FakeBus) -> None:
        fake_bus.add_player(SPOTIFY, metadata_variant("Song"))
        fake_bus.hang.add(SPOTIFY)
        fetcher = MetadataFetcher(fake_bus, timeout=0.05)

        with pytest.raises(FetchError, match="timed out"):
            await fetcher.fetch(SPOTIFY)

    @pytest.mark.asyncio
    async def test_call_raises(self) -> None:
        bus = MagicMock()
        bus.call = AsyncMock(side_effect=ConnectionResetError("reset by peer"))
        fetcher = MetadataFetcher(bus)

        with pytest.raises(FetchError, match="reset by peer"):
            await fetcher.fetch(SPOTIFY)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            [],
            ["not a variant"],
            [Variant("s", "Metadata")],
            [Variant("as", ["xesam:title"])],
        ],
    )
    async def test_malformed_reply(self, body: list) -> None:
        bus = MagicMock()
        bus.call = AsyncMock(return_value=method_return(*body))
        fetcher = MetadataFetcher(bus)

        with pytest.raises(FetchError, match="malformed"):
            await fetcher.fetch(SPOTIFY)

    @pytest.mark.asyncio
    async def test_invalid_service_name(self) -> None:
        bus = MagicMock()
        bus.call = AsyncMock()
        fetcher = MetadataFetcher(bus)

        with pytest.raises(FetchError):
            await fetcher.fetch("not a bus name!")
        bus.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hang_is_bounded(self, fake_bus: FakeBus) -> None:
        """The call returns within roughly its timeout."""
        fake_bus.add_player(SPOTIFY, metadata_variant("Song"))
        fake_bus.hang.add(SPOTIFY)
        fetcher = MetadataFetcher(fake_bus, timeout=0.05)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(FetchError):
            await fetcher.fetch(SPOTIFY)
        assert loop.time() - started < 1.0
