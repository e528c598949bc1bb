"""
Asset Provider Module.

Narration and image synthesis behind a single interface.
"""

from modules.asset_provider.base import AssetProvider
from modules.asset_provider.images import ImageClient
from modules.asset_provider.narration import NarrationClient
from modules.asset_provider.provider import HttpAssetProvider
from shared.errors import ImageServiceError, NarrationServiceError

__all__ = [
    "AssetProvider",
    "HttpAssetProvider",
    "ImageClient",
    "NarrationClient",
    "ImageServiceError",
    "NarrationServiceError",
]
