from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from geostamp.errors import AssetLoadError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_CACHED = 64
DEFAULT_HEADERS = {"User-Agent": "geostamp/0.1 (asset-fetch)"}


def _is_remote(url: str) -> bool:
    return urlparse(url).scheme in {"http", "https"}


def _decode(url: str, payload: bytes) -> Image.Image:
    try:
        with Image.open(BytesIO(payload)) as image:
            return image.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise AssetLoadError(url, f"decode failed ({exc})") from exc


class AssetLoader:
    """Fetches and decodes bitmap assets, once per distinct URL.

    Concurrent callers asking for the same URL share one pending task; decoded
    images are memoized and must be treated as read-only. Failures are evicted
    so a later render can ask again, but a single call never retries.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_dir: Path | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_cached: int = DEFAULT_MAX_CACHED,
    ) -> None:
        self._client = client
        self.base_dir = base_dir
        self.timeout = timeout
        self._pending: dict[str, asyncio.Task[Image.Image]] = {}
        self.max_cached = max(1, int(max_cached))
        self._resolved: OrderedDict[str, Image.Image] = OrderedDict()

    def cached(self, url: str) -> Image.Image | None:
        return self._resolved.get(url)

    def clear(self) -> None:
        self._resolved.clear()
        self._pending.clear()

    async def load_image(self, url: str) -> Image.Image:
        if not url:
            raise AssetLoadError(url, "empty asset url")
        hit = self._resolved.get(url)
        if hit is not None:
            self._resolved.move_to_end(url)
            return hit

        loop = asyncio.get_running_loop()
        task = self._pending.get(url)
        if task is None or task.get_loop() is not loop:
            task = loop.create_task(self._load(url))
            self._pending[url] = task
        try:
            image = await asyncio.shield(task)
        finally:
            if task.done() and self._pending.get(url) is task:
                self._pending.pop(url, None)
        self._remember(url, image)
        return image

    def _remember(self, url: str, image: Image.Image) -> None:
        self._resolved[url] = image
        self._resolved.move_to_end(url)
        while len(self._resolved) > self.max_cached:
            evicted, _ = self._resolved.popitem(last=False)
            LOGGER.debug("asset cache full, dropped %s", evicted)

    async def _load(self, url: str) -> Image.Image:
        if _is_remote(url):
            payload = await self._fetch_remote(url)
        else:
            payload = self._read_local(url)
        image = _decode(url, payload)
        LOGGER.debug("asset loaded %s (%dx%d)", url, image.width, image.height)
        return image

    async def _fetch_remote(self, url: str) -> bytes:
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=DEFAULT_HEADERS, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers=DEFAULT_HEADERS)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AssetLoadError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise AssetLoadError(url, f"network error ({exc.__class__.__name__})") from exc
        return response.content

    def _read_local(self, url: str) -> bytes:
        parsed = urlparse(url)
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(url)
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        try:
            return path.read_bytes()
        except (OSError, ValueError) as exc:
            # ValueError: 路径中含 NUL 等非法字符
            raise AssetLoadError(url, f"read failed ({getattr(exc, 'strerror', None) or exc})") from exc


@lru_cache(maxsize=1)
def get_default_loader() -> AssetLoader:
    """Process-wide loader shared by every compositor that is not given one."""
    return AssetLoader()
