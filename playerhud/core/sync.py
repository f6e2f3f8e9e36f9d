"""
Sync Loop for PlayerHUD.

Drives one cycle per tick:

    locate (only when no session is bound) -> fetch -> normalize
        -> resolve artwork -> publish

State machine:
    NO_PEER --locate ok--------> BOUND
    NO_PEER --locate failed----> NO_PEER   publish Unavailable("no player")
    BOUND   --fetch ok---------> BOUND     publish Playing(...)
    BOUND   --fetch failed-----> NO_PEER   publish Unavailable("peer lost")

Clearing the binding on a failed fetch is what makes the loop recover from
players that quit mid-session: the next tick locates again.

Cycles never overlap. A tick requested while another one runs is skipped,
and ticks missed because a cycle overran the interval are dropped rather
than queued. Each cycle also runs under a hard deadline (normally the sum
of the per-call timeouts). Running out of time while resolving artwork
only costs the image: the metadata already fetched is still published.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from playerhud.core import FetchError
from playerhud.core.events import (
    Event,
    EventBus,
    NowPlayingEvent,
    SessionBoundEvent,
    SessionLostEvent,
)
from playerhud.core.metadata import MetadataSnapshot, normalize
from playerhud.core.state import NO_PLAYER, PEER_LOST, Playing, PublishedState, Unavailable

if TYPE_CHECKING:
    from playerhud.bus.fetcher import MetadataFetcher
    from playerhud.bus.locator import PlayerLocator
    from playerhud.core.artwork import ArtworkCache

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 1.0


class SyncState(Enum):
    """Binding state of the sync loop."""

    NO_PEER = "no_peer"
    BOUND = "bound"


class SyncLoop:
    """
    Owns the sync context: the bound session name, the binding state and
    the last published state. Collaborators are injected so the loop can be
    driven by fakes.
    """

    def __init__(
        self,
        locator: PlayerLocator,
        fetcher: MetadataFetcher,
        artwork: ArtworkCache,
        *,
        event_bus: EventBus | None = None,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        deadline: float | None = None,
    ) -> None:
        """
        Args:
            locator: Finds a media session when none is bound.
            fetcher: Reads the Metadata property of the bound session.
            artwork: Resolves artwork references to local paths.
            event_bus: Optional bus receiving one NowPlayingEvent per cycle.
            interval: Seconds between ticks.
            deadline: Hard limit for one cycle in seconds, or None.
        """
        self.locator = locator
        self.fetcher = fetcher
        self.artwork = artwork
        self.event_bus = event_bus
        self.interval = interval
        self.deadline = deadline

        self.state = SyncState.NO_PEER
        self.service_name: str | None = None
        self.published: PublishedState | None = None
        self.cycles = 0

        # Metadata of the running cycle once the fetch succeeded
        self._fetched: MetadataSnapshot | None = None

        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()

    async def tick(self) -> PublishedState | None:
        """
        Run one sync cycle and publish its result.

        Returns:
            The published state, or None if the tick was skipped because the
            previous cycle is still running.
        """
        if self._tick_lock.locked():
            logger.debug("Previous cycle still running, skipping tick")
            return None

        async with self._tick_lock:
            self._fetched = None
            try:
                if self.deadline is not None:
                    result = await asyncio.wait_for(self._cycle(), timeout=self.deadline)
                else:
                    result = await self._cycle()
            except asyncio.TimeoutError:
                if self._fetched is not None:
                    logger.warning("Artwork not resolved within the %.1fs cycle deadline", self.deadline)
                    result = Playing(self._fetched, None)
                else:
                    logger.warning("Sync cycle exceeded its %.1fs deadline", self.deadline)
                    result = await self._give_up("cycle deadline exceeded")

            self.cycles += 1
            await self._publish(result)
            return result

    async def _cycle(self) -> PublishedState:
        service = self.service_name
        if service is None:
            service = await self.locator.locate()
            if service is None:
                return Unavailable(NO_PLAYER)
            await self._bind(service)

        try:
            blob = await self.fetcher.fetch(service)
        except FetchError as e:
            logger.warning("Metadata Get failed for %s: %s", service, e)
            await self._unbind(str(e))
            return Unavailable(PEER_LOST)

        snapshot = normalize(blob)
        self._fetched = snapshot
        art_path = await self.artwork.resolve(snapshot.art_ref)
        return Playing(snapshot, art_path)

    async def _give_up(self, error: str) -> PublishedState:
        if self.service_name is None:
            return Unavailable(NO_PLAYER)
        await self._unbind(error)
        return Unavailable(PEER_LOST)

    async def _bind(self, name: str) -> None:
        self.service_name = name
        self.state = SyncState.BOUND
        logger.info("Bound to media session %s", name)
        await self._emit(SessionBoundEvent(service_name=name))

    async def _unbind(self, error: str) -> None:
        name = self.service_name or ""
        self.service_name = None
        self.state = SyncState.NO_PEER
        logger.info("Lost media session %s", name)
        await self._emit(SessionLostEvent(service_name=name, error=error))

    async def _publish(self, result: PublishedState) -> None:
        changed = result != self.published
        self.published = result

        if changed:
            if isinstance(result, Playing):
                logger.info(
                    "Now playing: %s - %s",
                    result.snapshot.artist or "?",
                    result.snapshot.title or "?",
                )
            else:
                logger.info("Unavailable: %s", result.reason)

        await self._emit(NowPlayingEvent(state=result, changed=changed))

    async def _emit(self, event: Event) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(event)

    async def run(self) -> None:
        """
        Tick immediately, then every ``interval`` seconds until stop().

        The first tick is not delayed so the first visible state is never
        blank.
        """
        loop = asyncio.get_running_loop()
        logger.info("Sync loop started (interval %.1fs)", self.interval)

        await self.tick()
        next_at = loop.time() + self.interval

        while not self._stop_event.is_set():
            delay = max(0.0, next_at - loop.time())
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass

            await self.tick()

            next_at += self.interval
            now = loop.time()
            if next_at <= now:
                missed = int((now - next_at) // self.interval) + 1
                logger.debug("Cycle overran, dropping %d tick(s)", missed)
                next_at += missed * self.interval

        logger.info("Sync loop stopped after %d cycles", self.cycles)

    def stop(self) -> None:
        """Ask run() to return after the current cycle."""
        self._stop_event.set()
