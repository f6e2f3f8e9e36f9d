"""
Web presentation surface for PlayerHUD.

- NowPlayingView: render-ready state kept current from sync events
- StatusServer: FastAPI app serving that view and the cover image
"""

from playerhud.web.server import StatusServer
from playerhud.web.view import NowPlayingView

__all__ = ["NowPlayingView", "StatusServer"]
