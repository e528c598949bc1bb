"""
Fixtures for asset provider tests.
"""

import io
import wave

import pytest


@pytest.fixture
def wav_bytes():
    """One second of silent 8 kHz mono audio."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(8000)
        wav.writeframes(b"\x00\x00" * 8000)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    """Minimal PNG signature plus padding; content is never decoded."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
