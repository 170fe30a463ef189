from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class Artifact:
    handle: str
    filename: str
    data: bytes
    content_type: str = "video/mp4"

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ArtifactStore:
    """Holds finished exports until they are released."""

    def __init__(self, grace_seconds: float = 7.0):
        self.grace_seconds = grace_seconds
        self._items: Dict[str, Artifact] = {}

    def put(self, filename: str, data: bytes, content_type: str = "video/mp4") -> Artifact:
        artifact = Artifact(handle=uuid.uuid4().hex, filename=filename, data=data, content_type=content_type)
        self._items[artifact.handle] = artifact
        return artifact

    def get(self, handle: str) -> Optional[Artifact]:
        return self._items.get(handle)

    def release(self, handle: str) -> bool:
        released = self._items.pop(handle, None) is not None
        if released:
            logger.info("released export artifact %s", handle)
        return released

    def schedule_release(self, handle: str, loop: Optional[asyncio.AbstractEventLoop] = None) -> asyncio.TimerHandle:
        loop = loop or asyncio.get_running_loop()
        return loop.call_later(self.grace_seconds, self.release, handle)

    def __len__(self) -> int:
        return len(self._items)
