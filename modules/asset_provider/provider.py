"""
HTTP asset provider.

Binds the narration and image clients to the AssetProvider interface.
"""

from pathlib import Path

from shared.config import Settings
from shared.models.video import AudioArtifact, ImageArtifact
from modules.asset_provider.base import AssetProvider
from modules.asset_provider.images import ImageClient
from modules.asset_provider.narration import NarrationClient


class HttpAssetProvider(AssetProvider):
    """AssetProvider backed by the remote speech and image APIs."""

    def __init__(self, narration: NarrationClient, images: ImageClient):
        self.narration = narration
        self.images = images

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpAssetProvider":
        """Build both clients from application settings."""
        return cls(
            narration=NarrationClient(
                api_key=settings.murf_api_key,
                api_url=settings.murf_api_url,
                timeout=settings.provider_timeout_seconds,
            ),
            images=ImageClient(
                api_key=settings.hf_token,
                base_url=settings.image_api_base_url,
                model=settings.image_model,
                timeout=settings.provider_timeout_seconds,
            ),
        )

    async def synthesize_narration(self, text: str, voice_id: str, output_path: Path) -> AudioArtifact:
        return await self.narration.synthesize(text, voice_id, output_path)

    async def synthesize_image(self, prompt: str, output_path: Path) -> ImageArtifact:
        return await self.images.generate(prompt, output_path)
