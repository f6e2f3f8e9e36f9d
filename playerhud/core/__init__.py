"""
Core domain package.

This package contains the synchronization logic which should be independent
of the presentation layer (web, HUD window, etc.). Bus access is injected
through the collaborators in `playerhud.bus`, so everything here can be
driven by fakes in tests.

Exports are limited to the error taxonomy; import models and services from
the specific module you need (e.g. `playerhud.core.sync`).
"""

from __future__ import annotations

__all__: list[str] = [
    "ArtworkDownloadError",
    "BusConnectionError",
    "DiscoveryError",
    "FetchError",
    "NoPeerFound",
    "PlayerHudError",
]


class PlayerHudError(Exception):
    """Base class for PlayerHUD exceptions."""


class BusConnectionError(PlayerHudError):
    """Raised when the session bus connection cannot be obtained. Fatal."""


class DiscoveryError(PlayerHudError):
    """Raised when the bus name enumeration call fails or times out."""


class NoPeerFound(PlayerHudError):
    """Raised when enumeration succeeded but no media-session name matched."""


class FetchError(PlayerHudError):
    """Raised when the Metadata property read fails, times out or is malformed."""


class ArtworkDownloadError(PlayerHudError):
    """Raised when remote artwork cannot be downloaded into the cache slot."""
