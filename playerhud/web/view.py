"""
Render-ready view of the published state.

The view subscribes to sync events and keeps what a HUD needs: the latest
state, the display labels (with the same fallbacks the desktop overlay
shows) and the last artwork path that ever resolved. That path survives
cycles that resolve nothing, so the image does not flicker on a transient
download failure or a track without cover art.
"""

from __future__ import annotations

import time
from typing import Any

from playerhud.core.events import Event, NowPlayingEvent, SessionBoundEvent, SessionLostEvent
from playerhud.core.state import NO_PLAYER, Playing, PublishedState, Unavailable

# Placeholder for a missing field
NO_VALUE = "—"


class NowPlayingView:
    """Latest state as the presentation layer sees it."""

    def __init__(self) -> None:
        self.state: PublishedState | None = None
        self.artwork_path: str | None = None
        self.service_name: str | None = None
        self.updated_at: float | None = None

    async def on_event(self, event: Event) -> None:
        """Event bus handler for ``nowplaying.*``."""
        if isinstance(event, NowPlayingEvent) and event.state is not None:
            self.apply(event.state)
        elif isinstance(event, SessionBoundEvent):
            self.service_name = event.service_name
        elif isinstance(event, SessionLostEvent):
            self.service_name = None

    def apply(self, state: PublishedState) -> None:
        self.state = state
        self.updated_at = time.time()
        if isinstance(state, Playing) and state.art_path:
            self.artwork_path = state.art_path

    def labels(self) -> tuple[str, str]:
        """(title, artist) display strings."""
        state = self.state
        if isinstance(state, Playing):
            return state.snapshot.title or NO_VALUE, state.snapshot.artist or NO_VALUE
        if isinstance(state, Unavailable) and state.reason == NO_PLAYER:
            return "No player", "MPRIS not found"
        return NO_VALUE, NO_VALUE

    def to_dict(self) -> dict[str, Any]:
        title, artist = self.labels()
        result: dict[str, Any] = (
            self.state.to_dict() if self.state is not None else {"state": "starting"}
        )
        result["display"] = {"title": title, "artist": artist}
        result["service_name"] = self.service_name
        result["artwork_available"] = self.artwork_path is not None
        result["updated_at"] = self.updated_at
        return result
