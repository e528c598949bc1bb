"""
Pytest configuration and fixtures for API Gateway tests.
"""

import pytest

from shared.config import Settings
from shared.models.video import GenerateVideoRequest, Segment
from api_gateway.orchestrator import PipelineCoordinator
from api_gateway.services.progress_broadcaster import ProgressBroadcaster
from api_gateway.tests.fakes import FakeAssetProvider, FakeCompositor


@pytest.fixture
def video_request():
    return GenerateVideoRequest(
        segments=[
            Segment(visual="A sunrise over the mountains", voiceover="Every day starts with a choice."),
            Segment(visual="A runner on a trail", voiceover="Keep moving, one step at a time."),
            Segment(visual="A finish line banner", voiceover="Join us today and start now!"),
        ],
        voice_id=None,
    )


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        environment="test",
        log_level="DEBUG",
        video_output_dir=str(tmp_path / "videos"),
        temp_dir=str(tmp_path / "tmp"),
        heartbeat_interval_seconds=30,
    )


@pytest.fixture
def broadcaster():
    return ProgressBroadcaster()


@pytest.fixture
def make_coordinator(tmp_path, broadcaster):
    """Factory for coordinators wired to fakes and tmp_path directories."""
    def factory(assets=None, compositor=None, **kwargs) -> PipelineCoordinator:
        options = {
            "temp_dir": str(tmp_path / "tmp"),
            "output_dir": str(tmp_path / "videos"),
        }
        options.update(kwargs)
        return PipelineCoordinator(
            assets=assets or FakeAssetProvider(),
            compositor=compositor or FakeCompositor(),
            broadcaster=broadcaster,
            **options
        )
    return factory
