"""
Fixtures for compositor tests.
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest


class FakeEncoderProcess:
    """Stand-in for an asyncio subprocess with a real stderr stream."""

    def __init__(self, stderr: bytes = b"", returncode: int = 0, finish: bool = True):
        self.stderr = asyncio.StreamReader()
        self.stderr.feed_data(stderr)
        if finish:
            self.stderr.feed_eof()
        self.returncode = None
        self._exit_code = returncode
        self.kill = MagicMock(side_effect=self._killed)
        self.wait = AsyncMock(side_effect=self._reap)

    def _killed(self):
        self._exit_code = -9

    async def _reap(self):
        self.returncode = self._exit_code
        return self.returncode


@pytest.fixture
def make_process():
    """Factory for fake encoder processes (must be called inside a running loop)."""
    return FakeEncoderProcess


@pytest.fixture
def media_files(tmp_path):
    """Three image paths and an audio path inside a run directory."""
    run_dir = tmp_path / "run_test"
    run_dir.mkdir()
    images = [run_dir / f"image_{i}.png" for i in range(3)]
    for image in images:
        image.write_bytes(b"png")
    audio = run_dir / "voiceover.mp3"
    audio.write_bytes(b"mp3")
    return images, audio, run_dir / "video.mp4"


@pytest.fixture
def spawning():
    """Spawn replacement factory: writes a partial output file, then returns the process."""
    def factory(process):
        async def spawn(args):
            Path(args[-1]).write_bytes(b"partial")
            return process
        return spawn
    return factory
