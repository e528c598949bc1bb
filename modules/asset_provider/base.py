"""
Asset provider interface.

The pipeline depends only on this abstraction; concrete transports live in
the sibling client modules.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from shared.models.video import AudioArtifact, ImageArtifact


class AssetProvider(ABC):
    """Narration and image synthesis."""

    @abstractmethod
    async def synthesize_narration(self, text: str, voice_id: str, output_path: Path) -> AudioArtifact:
        """
        Synthesize narration audio for `text` and write it to `output_path`.

        Raises:
            NarrationServiceError: On upstream failure, rate limit or timeout
        """

    @abstractmethod
    async def synthesize_image(self, prompt: str, output_path: Path) -> ImageArtifact:
        """
        Generate one image for `prompt` and write it to `output_path`.

        Raises:
            ImageServiceError: On upstream failure, rate limit, timeout or
                exhausted credits (reason="out_of_credits")
        """
