"""
Image generation client.

OpenAI-compatible images endpoint (Hugging Face router by default) called
through the OpenAI SDK with retries disabled.
"""

import asyncio
import base64
import binascii
from pathlib import Path
from typing import Optional

import httpx
from openai import (
    OpenAI,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
)

from shared.errors import ImageServiceError
from shared.logging import get_logger
from shared.models.video import ImageArtifact
from modules.asset_provider.downloads import fetch_to_file

logger = get_logger("asset_provider")

MAX_PROMPT_LENGTH = 1000


def _error_for_status(error: APIStatusError) -> ImageServiceError:
    """Translate a non-success images API response."""
    status = error.status_code

    if status == 401:
        return ImageServiceError(
            "Invalid or expired image generation API key",
            reason="invalid_api_key",
            status_code=status,
            details="Please check your HF_TOKEN configuration"
        )
    if status == 402:
        return ImageServiceError(
            "Image generation account out of credits",
            reason="out_of_credits",
            status_code=status,
            details="Please add credits to your image generation account to continue"
        )
    if status == 429:
        retry_after = error.response.headers.get("retry-after")
        return ImageServiceError(
            "Too many requests to image generation API",
            reason="rate_limited",
            status_code=status,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            details="Please wait before trying again"
        )
    if status == 400:
        return ImageServiceError(
            "Invalid prompt or request parameters",
            reason="bad_request",
            status_code=status,
            details=error.message or "Please check your prompt and try again"
        )
    return ImageServiceError(
        f"Image generation failed: HTTP {status}",
        reason="provider_error",
        status_code=status,
        details="Image generation service is temporarily unavailable"
    )


class ImageClient:
    """Client for the images generation API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        model: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            api_key: Provider token; calls fail with reason="not_configured" without one
            base_url: OpenAI-compatible API base URL
            model: Image model name
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport for downloading URL results
        """
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._openai: Optional[OpenAI] = None
        if api_key:
            self._openai = OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=0
            )

    async def _generate(self, prompt: str):
        """Run the blocking SDK call in the default executor."""
        loop = asyncio.get_running_loop()

        def _call_images_api():
            return self._openai.images.generate(
                model=self.model,
                prompt=prompt,
                response_format="b64_json"
            )

        return await loop.run_in_executor(None, _call_images_api)

    async def generate(self, prompt: str, output_path: Path) -> ImageArtifact:
        """
        Generate one image and write it to `output_path`.

        Args:
            prompt: Visual description
            output_path: Destination image file

        Returns:
            ImageArtifact

        Raises:
            ImageServiceError: On any provider, transport or format failure
        """
        if self._openai is None:
            raise ImageServiceError(
                "Image generation service is not configured",
                reason="not_configured",
                details="Set HF_TOKEN to enable image generation"
            )

        if len(prompt) > MAX_PROMPT_LENGTH:
            raise ImageServiceError(
                "Image prompt is too long",
                reason="prompt_too_long",
                details=f"Please use a shorter description (max {MAX_PROMPT_LENGTH} characters)"
            )

        logger.info(
            "Image generation request",
            extra={"model": self.model, "prompt_preview": prompt[:50]}
        )

        try:
            response = await self._generate(prompt)
        except APITimeoutError as e:
            raise ImageServiceError(
                "Image generation request timed out",
                reason="timeout",
                details=f"No response within {self.timeout:.0f} seconds"
            ) from e
        except APIConnectionError as e:
            raise ImageServiceError(
                f"Image generation failed: {str(e)}",
                reason="provider_error",
                details="Could not reach the image generation service"
            ) from e
        except APIStatusError as e:
            raise _error_for_status(e) from e

        images = getattr(response, "data", None) or []
        if not images:
            raise ImageServiceError(
                "Invalid response from image generation service",
                reason="invalid_response",
                details="The service returned no images"
            )

        image = images[0]
        content = None
        if image.b64_json:
            try:
                content = base64.b64decode(image.b64_json, validate=True)
            except binascii.Error as e:
                raise ImageServiceError(
                    "Invalid image payload from provider",
                    reason="invalid_response"
                ) from e
        elif not image.url:
            raise ImageServiceError(
                "Invalid response from image generation service",
                reason="invalid_response",
                details="The service returned an unexpected response format"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                await fetch_to_file(client, image.url or "", output_path, ImageServiceError, "image", content=content)
        except httpx.TimeoutException as e:
            raise ImageServiceError(
                "Image download timed out",
                reason="timeout"
            ) from e
        except httpx.HTTPError as e:
            raise ImageServiceError(
                f"Failed to download image: {str(e)}",
                reason="download_failed"
            ) from e

        return ImageArtifact(path=output_path)
