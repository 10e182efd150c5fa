"""STT proxy adapter — implements TranscriptionPort over HTTP.

Uploads the recording as multipart ``file`` to a speech-to-text proxy
(which converts it to mono 16 kHz WAV and calls the real backend) and
reads ``{"text": ...}`` back.

The proxy can be guarded by a shared key sent in the ``x-stt-key`` header.
"""

from __future__ import annotations

import logging

import httpx

from src.ports.transcription_port import TranscriptionError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 30


class HttpTranscriber:
    """STT proxy implementation of TranscriptionPort."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout: float = _TIMEOUT_SECONDS,
        filename: str = "recording.m4a",
        content_type: str = "audio/m4a",
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._filename = filename
        self._content_type = content_type

    async def transcribe(self, audio: bytes) -> str:
        """Upload *audio* to the proxy and return the transcript.

        Raises:
            TranscriptionError: On transport errors, HTTP error statuses,
                or a response without a text field.
        """
        headers = {"x-stt-key": self._api_key} if self._api_key else {}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    self._url,
                    files={"file": (self._filename, audio, self._content_type)},
                    headers=headers,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error("STT proxy returned %s: %s", exc.response.status_code, exc.response.text[:200])
            raise TranscriptionError(f"STT server error {exc.response.status_code}") from exc
        except Exception as exc:
            logger.error("STT proxy request to %s failed: %s", self._url, exc)
            raise TranscriptionError(f"STT request failed: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("text"), str):
            logger.error("STT proxy returned unexpected payload: %s", str(data)[:200])
            raise TranscriptionError("STT server returned no text")

        text = data["text"].strip()
        logger.info("Transcribed %d chars via STT proxy", len(text))
        return text
