"""
Published state.

The result of one sync cycle is either Playing (a snapshot plus the
resolved artwork path, if any) or Unavailable (with a fixed reason). This is
the only thing the presentation layer ever sees.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from playerhud.core.metadata import MetadataSnapshot

# Unavailable reasons
NO_PLAYER = "no player"
PEER_LOST = "peer lost"


@dataclass(frozen=True)
class Playing:
    """A media session is bound and its metadata was read this cycle."""

    snapshot: MetadataSnapshot
    art_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"state": "playing"}
        result.update(self.snapshot.to_dict())
        result["art_path"] = self.art_path
        return result


@dataclass(frozen=True)
class Unavailable:
    """No metadata could be obtained this cycle."""

    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"state": "unavailable", "reason": self.reason}


PublishedState = Union[Playing, Unavailable]
