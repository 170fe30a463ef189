import asyncio
from typing import Dict, List, Optional

import pytest

from timeline_engines.config.runtime_config import ExportSettings
from timeline_engines.export.errors import EngineExecutionError
from timeline_engines.export.service import ExportOrchestrator, set_export_service
from timeline_engines.video_timeline.models import AudioClip, ExportRequest, Media, VideoClip


class FakeEngine:
    """In-memory stand-in for FFmpegEngine."""

    def __init__(self, ready: bool = True, fail_render: bool = False, progress=(0.2, 0.1, 0.6, 1.0)):
        self.ready = ready
        self.fail_render = fail_render
        self.progress = progress
        self.files: Dict[str, bytes] = {}
        self.written: Dict[str, bytes] = {}
        self.removed: List[str] = []
        self.runs: List[List[str]] = []
        self.gate: Optional[asyncio.Event] = None
        self.disposed = False

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def init(self) -> None:
        self.ready = True

    async def write_file(self, name: str, data: bytes) -> None:
        self.files[name] = data
        self.written[name] = data

    async def read_file(self, name: str) -> bytes:
        return self.files[name]

    async def remove_file(self, name: str) -> None:
        self.files.pop(name, None)
        self.removed.append(name)

    async def run(self, args, duration=0.0, on_progress=None) -> None:
        self.runs.append(list(args))
        output = args[-1]
        if output != "export.mp4":
            self.files[output] = b"base-canvas"
            return
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_render:
            raise EngineExecutionError("ffmpeg failed (code 1)", stderr_tail="No such filter: 'bogus'", returncode=1)
        for ratio in self.progress:
            if on_progress:
                on_progress(ratio)
        self.files[output] = b"rendered-mp4"

    async def dispose(self) -> None:
        self.disposed = True


class FakeLoader:
    def __init__(self):
        self.fetched: List[str] = []

    async def fetch(self, media: Media) -> bytes:
        self.fetched.append(media.id)
        return f"bytes:{media.id}".encode()


def _make_request(**kwargs) -> ExportRequest:
    video_media = Media(id="vid", kind="video", source_uri="/media/vid.mp4", duration=6, dimensions=(1280, 720))
    music = Media(id="music", kind="audio", source_uri="https://cdn.example.com/music.mp3", duration=10)
    clips = [
        VideoClip(id="c1", media=video_media, offset=0),
        VideoClip(id="c2", media=video_media, offset=4, trim_start=2, z_index=1),
        AudioClip(id="c3", media=music, offset=1),
    ]
    return ExportRequest(clips=kwargs.pop("clips", clips), width=kwargs.pop("width", 1281), height=kwargs.pop("height", 720), **kwargs)


@pytest.fixture
def make_request():
    return _make_request


@pytest.fixture
def settings():
    return ExportSettings(artifact_grace_seconds=0.05, prescale_factor=2)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def loader():
    return FakeLoader()


@pytest.fixture
def orchestrator(engine, loader, settings):
    service = ExportOrchestrator(engine, loader=loader, settings=settings)
    set_export_service(service)
    yield service
    set_export_service(None)
