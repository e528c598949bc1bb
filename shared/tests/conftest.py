"""
Pytest configuration and fixtures.
"""

import pytest


@pytest.fixture
def test_env_file(tmp_path):
    """Create a temporary .env file for testing."""
    env_file = tmp_path / ".env"
    env_content = """
MURF_API_KEY=murf_test_key_1234567890
HF_TOKEN=hf_test_token_1234567890
REDIS_URL=redis://localhost:6379
ENVIRONMENT=test
LOG_LEVEL=DEBUG
VIDEO_OUTPUT_DIR=/srv/videos
IMAGE_CONCURRENCY=2
"""
    env_file.write_text(env_content)
    return env_file


@pytest.fixture
def valid_payload():
    """A well-formed three-segment submission."""
    return {
        "imagePrompts": [
            {"visual": "A sunrise over the mountains", "voiceover": "Every day starts with a choice."},
            {"visual": "A runner on a trail", "voiceover": "Keep moving, one step at a time."},
            {"visual": "A finish line banner", "voiceover": "Join us today and start now!"},
        ],
        "voiceId": "en-US-natalie",
    }
