"""
Text-to-speech client.

Murf-style JSON speech API: POST {text, voiceId}, receive an audio location,
download it. Single attempt per call; retry policy belongs to the caller.
"""

from pathlib import Path
from typing import Any, Optional

import httpx
from mutagen import File as MutagenFile
from mutagen import MutagenError

from shared.errors import NarrationServiceError
from shared.logging import get_logger
from shared.models.video import AudioArtifact
from modules.asset_provider.downloads import fetch_to_file, looks_like_base64

logger = get_logger("asset_provider")

MAX_TEXT_LENGTH = 5000

# Response fields that may carry the audio location, in preference order
AUDIO_LOCATION_FIELDS = ("audio_url", "url", "audioUrl", "fileUrl", "link", "audioFile")


def extract_audio_location(data: Any) -> Optional[str]:
    """
    Find the audio location in a speech API response.

    Args:
        data: Decoded JSON response

    Returns:
        http(s) URL, data: URL, or None if nothing usable was found
    """
    if isinstance(data, str):
        candidates = [data]
    elif isinstance(data, dict):
        candidates = [data[f] for f in AUDIO_LOCATION_FIELDS if isinstance(data.get(f), str)]
    else:
        candidates = []

    for candidate in candidates:
        if candidate.startswith(("http://", "https://", "data:")):
            return candidate

    # Some responses inline the audio as bare base64
    if candidates and looks_like_base64(candidates[0]):
        return f"data:audio/mpeg;base64,{candidates[0]}"

    return None


def _error_for_status(response: httpx.Response) -> NarrationServiceError:
    """Translate a non-success speech API response."""
    status = response.status_code

    if status == 401:
        return NarrationServiceError(
            "Invalid or expired text-to-speech API key",
            reason="invalid_api_key",
            status_code=status,
            details="Please check your MURF_API_KEY configuration"
        )
    if status == 403:
        return NarrationServiceError(
            "Text-to-speech API key lacks required permissions",
            reason="insufficient_permissions",
            status_code=status,
            details="Please verify your API key permissions"
        )
    if status == 429:
        retry_after = response.headers.get("retry-after")
        return NarrationServiceError(
            "Too many requests to text-to-speech API",
            reason="rate_limited",
            status_code=status,
            retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            details="Please wait before trying again"
        )
    if status == 400:
        details = None
        try:
            body = response.json()
            error = body.get("error") if isinstance(body, dict) else None
            details = error.get("message") if isinstance(error, dict) else error
        except ValueError:
            details = response.text or None
        return NarrationServiceError(
            "Invalid text or voice parameters",
            reason="bad_request",
            status_code=status,
            details=details or "Please check your text and voice settings"
        )
    return NarrationServiceError(
        f"TTS generation failed: HTTP {status}",
        reason="provider_error",
        status_code=status,
        details="Text-to-speech service is temporarily unavailable"
    )


class NarrationClient:
    """HTTP client for the speech synthesis API."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            api_key: Provider API key; calls fail with reason="not_configured" without one
            api_url: Speech generation endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def synthesize(self, text: str, voice_id: str, output_path: Path) -> AudioArtifact:
        """
        Generate narration and write it to `output_path`.

        Args:
            text: Full narration text
            voice_id: Provider voice identifier
            output_path: Destination audio file

        Returns:
            AudioArtifact with the metadata duration as a hint

        Raises:
            NarrationServiceError: On any provider, transport or format failure
        """
        if not self.api_key:
            raise NarrationServiceError(
                "Text-to-speech service is not configured",
                reason="not_configured",
                details="Set MURF_API_KEY to enable narration"
            )

        if len(text) > MAX_TEXT_LENGTH:
            raise NarrationServiceError(
                "Text is too long for speech generation",
                reason="text_too_long",
                details=f"Please use shorter text (max {MAX_TEXT_LENGTH} characters)"
            )

        logger.info(
            "TTS generation request",
            extra={"text_length": len(text), "voice_id": voice_id, "text_preview": text[:50]}
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    self.api_url,
                    json={"text": text, "voiceId": voice_id},
                    headers={"Accept": "application/json", "api-key": self.api_key}
                )
                logger.info("TTS API response received", extra={"status_code": response.status_code})

                if response.is_error:
                    raise _error_for_status(response)

                try:
                    data = response.json()
                except ValueError as e:
                    raise NarrationServiceError(
                        "Invalid response from text-to-speech service",
                        reason="invalid_response",
                        details="Service returned non-JSON data"
                    ) from e

                location = extract_audio_location(data)
                if not location:
                    raise NarrationServiceError(
                        "No audio URL returned from TTS service",
                        reason="invalid_response",
                        details="Service returned unexpected data format"
                    )

                await fetch_to_file(client, location, output_path, NarrationServiceError, "audio")

        except httpx.TimeoutException as e:
            raise NarrationServiceError(
                "Text-to-speech request timed out",
                reason="timeout",
                details=f"No response within {self.timeout:.0f} seconds"
            ) from e
        except httpx.HTTPError as e:
            raise NarrationServiceError(
                f"TTS generation failed: {str(e)}",
                reason="provider_error",
                details="Could not reach the text-to-speech service"
            ) from e

        return AudioArtifact(path=output_path, duration_hint=read_audio_length(output_path))


def read_audio_length(path: Path) -> float:
    """
    Read the duration from audio file metadata.

    Args:
        path: Audio file

    Returns:
        Duration in seconds

    Raises:
        NarrationServiceError: If the file is not recognisable audio
    """
    try:
        audio = MutagenFile(str(path))
    except MutagenError as e:
        raise NarrationServiceError(
            f"Downloaded narration is not valid audio: {str(e)}",
            reason="invalid_response"
        ) from e

    if audio is None or audio.info is None:
        raise NarrationServiceError(
            "Downloaded narration is not a recognised audio format",
            reason="invalid_response"
        )
    return float(audio.info.length)
