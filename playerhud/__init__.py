"""
PlayerHUD - a "now playing" synchronizer for MPRIS media players.

PlayerHUD watches the D-Bus session bus for a media player exposing the
MPRIS interface, polls its track metadata, resolves cover art to a local
file and publishes a normalized state for a presentation layer to render.
"""

__version__ = "0.1.0"
__author__ = "PlayerHUD Contributors"

from playerhud.server import HudService

__all__ = ["HudService", "__version__"]
