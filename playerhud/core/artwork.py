import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote

import httpx

from playerhud.core import ArtworkDownloadError

logger = logging.getLogger(__name__)

# Upper bound for a single cover download
DEFAULT_MAX_BYTES = 10 * 1024 * 1024

DEFAULT_TIMEOUT_SECONDS = 2.0

_HTTP_SCHEMES = ("http://", "https://")
_FILE_SCHEME = "file://"
_LOCALHOST = "localhost"


@dataclass(frozen=True)
class LocalPath:
    """Artwork already on the local filesystem."""

    path: str


@dataclass(frozen=True)
class RemoteURL:
    """Artwork that has to be fetched over HTTP(S)."""

    url: str


@dataclass(frozen=True)
class Unknown:
    """Missing or unsupported artwork reference."""

    raw: Optional[str] = None


ArtworkReference = Union[LocalPath, RemoteURL, Unknown]


def parse_artwork_ref(raw: Optional[str]) -> ArtworkReference:
    """
    Classify the string form of an ``mpris:artUrl`` value.

    file:// URLs become LocalPath with everything after the scheme
    percent-decoded (players do not always encode "#" or "?" in paths),
    http:// and https:// URLs become RemoteURL, anything else is Unknown.
    """
    if not isinstance(raw, str) or not raw:
        return Unknown()

    lowered = raw.lower()

    if lowered.startswith(_FILE_SCHEME):
        rest = raw[len(_FILE_SCHEME):]
        if rest.lower().startswith(_LOCALHOST + "/"):
            rest = rest[len(_LOCALHOST):]
        path = unquote(rest)
        if not path.startswith("/"):
            return Unknown(raw)
        return LocalPath(path)

    if lowered.startswith(_HTTP_SCHEMES):
        return RemoteURL(raw)

    return Unknown(raw)


def default_cache_path() -> Path:
    """Per-user cache slot in the system temp directory."""
    return Path(tempfile.gettempdir()) / f"playerhud_cover_{os.getuid()}.jpg"


def detect_image_mime(data: bytes) -> str:
    """MIME detection via magic bytes."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    elif data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    elif data.startswith(b"GIF87a") or data.startswith(b"GIF89a"):
        return "image/gif"
    elif data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return "image/webp"
    else:
        # Default to JPEG as it's most common for album art
        return "image/jpeg"


class ArtworkCache:
    """
    Resolves artwork references into local file paths.

    This cache handles:
    1. Local file references: returned as-is when the file exists (no copy).
    2. Remote URLs: downloaded into one fixed per-user cache slot.
    3. Anything else: ignored without any I/O.

    Cache slot:
    - Exactly one file, reused for every remote download (never per track).
    - A download is written to a temporary file first and then atomically
      moved over the slot, so a failed download leaves the previous image
      byte-for-byte intact. The caller keeps showing the stale image.
    - The last downloaded URL is remembered; asking for it again while the
      slot still exists costs no network I/O.
    - At most one download is in flight at a time.
    """

    def __init__(
        self,
        cache_path: Optional[Path] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.cache_path = Path(cache_path) if cache_path is not None else default_cache_path()
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._client = client
        self._owns_client = client is None
        self._downloading = False
        self._last_url: Optional[str] = None

    @property
    def downloading(self) -> bool:
        return self._downloading

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": "playerhud"},
            )
        return self._client

    async def resolve(self, ref: Union[str, ArtworkReference, None]) -> Optional[str]:
        """
        Resolve an artwork reference to a usable local path.

        Args:
            ref: Raw ``mpris:artUrl`` string, an already parsed reference, or None.

        Returns:
            Local file path, or None if nothing usable is available this cycle.
        """
        if not isinstance(ref, (LocalPath, RemoteURL, Unknown)):
            ref = parse_artwork_ref(ref)

        if isinstance(ref, LocalPath):
            if os.path.exists(ref.path):
                return ref.path
            logger.debug("Local artwork does not exist: %s", ref.path)
            return None

        if isinstance(ref, RemoteURL):
            if self._downloading:
                logger.debug("Artwork download already in flight, skipping %s", ref.url)
                return None
            try:
                return await self.fetch_remote(ref.url)
            except ArtworkDownloadError as e:
                logger.warning("Artwork download failed for %s: %s", ref.url, e)
                return None

        if ref.raw:
            logger.debug("Unsupported artwork reference: %s", ref.raw)
        return None

    async def fetch_remote(self, url: str) -> str:
        """
        Download ``url`` into the cache slot.

        Returns:
            The cache slot path.

        Raises:
            ArtworkDownloadError: On any network, HTTP, size or I/O failure.
                The slot content is left untouched in that case.
        """
        if url == self._last_url and self.cache_path.exists():
            return str(self.cache_path)

        if self._downloading:
            raise ArtworkDownloadError("another download is in flight")

        self._downloading = True
        try:
            try:
                data = await asyncio.wait_for(self._download(url), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise ArtworkDownloadError(f"timed out after {self.timeout:.1f}s") from e

            try:
                await asyncio.to_thread(self._write_slot, data)
            except OSError as e:
                raise ArtworkDownloadError(f"cannot write cache slot: {e}") from e
        finally:
            self._downloading = False

        self._last_url = url
        logger.debug("Cached artwork from %s (%d bytes)", url, len(data))
        return str(self.cache_path)

    async def _download(self, url: str) -> bytes:
        try:
            parsed = httpx.URL(url)
        except (httpx.InvalidURL, ValueError) as e:
            raise ArtworkDownloadError(f"invalid URL: {e}") from e
        if not parsed.host:
            raise ArtworkDownloadError("invalid URL: no host")

        client = self._get_client()
        chunks: list[bytes] = []
        received = 0

        try:
            async with client.stream(
                "GET", parsed, follow_redirects=True, timeout=self.timeout
            ) as response:
                if not response.is_success:
                    raise ArtworkDownloadError(f"HTTP {response.status_code}")

                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise ArtworkDownloadError(
                            f"response exceeds {self.max_bytes} bytes"
                        )
                    chunks.append(chunk)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise ArtworkDownloadError(str(e) or e.__class__.__name__) from e

        if received == 0:
            raise ArtworkDownloadError("empty response body")

        return b"".join(chunks)

    def _write_slot(self, data: bytes) -> None:
        """Replace the slot content atomically."""
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.cache_path.name}.",
            suffix=".part",
            dir=self.cache_path.parent,
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.cache_path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def clear(self) -> None:
        """Remove the cache slot file."""
        self._last_url = None
        try:
            self.cache_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove artwork cache %s: %s", self.cache_path, e)

    async def aclose(self) -> None:
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
