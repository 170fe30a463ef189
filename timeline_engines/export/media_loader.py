from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from timeline_engines.export.errors import MediaFetchError
from timeline_engines.video_timeline.models import Media

logger = logging.getLogger(__name__)


class MediaLoader:
    """Resolves a media ``source_uri`` to bytes (local path, ``file://`` or ``http(s)://``)."""

    def __init__(self, timeout: float = 120.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    async def fetch(self, media: Media) -> bytes:
        parsed = urlparse(media.source_uri)
        if parsed.scheme in ("http", "https"):
            return await self._fetch_remote(media)
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(media.source_uri)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise MediaFetchError(
                f"cannot read media {media.id} from {path}: {exc}", media_id=media.id, stage="setup"
            ) from exc

    async def _fetch_remote(self, media: Media) -> bytes:
        try:
            if self._client is not None:
                resp = await self._client.get(media.source_uri)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    resp = await client.get(media.source_uri)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise MediaFetchError(
                f"cannot download media {media.id}: {exc}", media_id=media.id, stage="setup"
            ) from exc
        logger.debug("fetched media %s (%d bytes)", media.id, len(resp.content))
        return resp.content
