"""
D-Bus access for PlayerHUD.

This package owns the session bus connection and the two calls PlayerHUD
makes on it: name enumeration (to find a player) and the Metadata property
read (to follow what it plays).
"""

from playerhud.bus.connection import BusConnector
from playerhud.bus.fetcher import MetadataFetcher
from playerhud.bus.locator import MPRIS_PREFIX, PlayerLocator

__all__ = [
    "BusConnector",
    "MPRIS_PREFIX",
    "MetadataFetcher",
    "PlayerLocator",
]
