"""
Metadata normalization.

MPRIS players publish track information as an ``a{sv}`` mapping whose
contents vary a lot between implementations. This module reduces that
mapping to the three fields PlayerHUD displays. Normalization never fails:
every field is independently optional.

Keys read:
    xesam:title   - string
    xesam:artist  - list of strings, only the first entry is kept
    mpris:artUrl  - string (file:// or http(s):// URL)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

TITLE_KEY = "xesam:title"
ARTIST_KEY = "xesam:artist"
ART_URL_KEY = "mpris:artUrl"


@dataclass(frozen=True)
class MetadataSnapshot:
    """Normalized metadata of the currently loaded track."""

    title: str | None = None
    artist: str | None = None
    art_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "art_ref": self.art_ref,
        }


def _unwrap(value: Any) -> Any:
    # Values arrive wrapped in dbus Variants when read off the bus
    return value.value if hasattr(value, "value") and hasattr(value, "signature") else value


def _string_field(value: Any) -> str | None:
    value = _unwrap(value)
    if isinstance(value, str) and value:
        return value
    return None


def _first_artist(value: Any) -> str | None:
    value = _unwrap(value)

    # Some players send a plain string instead of the specified "as"
    if isinstance(value, str):
        return value or None

    if isinstance(value, (list, tuple)) and value:
        return _string_field(value[0])

    return None


def normalize(blob: Any) -> MetadataSnapshot:
    """
    Normalize an MPRIS metadata mapping into a MetadataSnapshot.

    Unknown keys are ignored. Missing, empty or wrongly typed values yield
    None for that field only.

    Args:
        blob: The ``a{sv}`` mapping (values may be Variants or plain values).

    Returns:
        A new MetadataSnapshot. Never raises.
    """
    if not isinstance(blob, Mapping):
        return MetadataSnapshot()

    return MetadataSnapshot(
        title=_string_field(blob.get(TITLE_KEY)),
        artist=_first_artist(blob.get(ARTIST_KEY)),
        art_ref=_string_field(blob.get(ART_URL_KEY)),
    )
