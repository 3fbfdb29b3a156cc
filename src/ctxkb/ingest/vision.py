"""Vision extractor — transcribes an image with a multimodal model.

Sends the image as a base64 ``data:`` URL to any OpenAI-compatible
``/chat/completions`` endpoint (OpenRouter by default) together with a fixed
transcription instruction. The whole reply becomes a single page.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ctxkb.config import resolve_api_key
from ctxkb.exceptions import ExtractionError
from ctxkb.ingest.base import BaseExtractor, check_readable_file, normalize_whitespace
from ctxkb.ingest.detect import guess_media_type
from ctxkb.types import Page

if TYPE_CHECKING:
    from pathlib import Path

    from ctxkb.config import KbConfig

__all__ = ["TRANSCRIPTION_PROMPT", "VisionExtractor"]

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROMPT = (
    "Extract all information from this image. It may contain requirements for a "
    "project, discussions with clients from platforms like Upwork, Discord, Slack, "
    "etc. Provide a detailed response with all relevant information."
)


class VisionExtractor(BaseExtractor):
    """Extractor for images, backed by a remote vision-capable chat model.

    Every remote failure (HTTP error, unreachable host, timeout, empty
    reply) raises ``ExtractionError`` with ``retryable=True``.

    Config fields used::

        [vision]
        model = "mistralai/mistral-small-3.2-24b-instruct:free"
        base_url = "https://openrouter.ai/api/v1"
        api_key_env = "OPENROUTER_API_KEY"
        timeout = 120
        max_file_mb = 20
    """

    name = "vision"

    def __init__(self, config: KbConfig) -> None:
        self._model = config.vision.model
        self._base_url = config.vision.base_url.rstrip("/")
        self._timeout = config.vision.timeout
        self._max_size = config.vision.max_file_mb * 1024 * 1024
        self._api_key = resolve_api_key(config.vision.api_key_env)

    def extract(self, path: Path) -> list[Page]:
        """Transcribe an image into a single page of text.

        Args:
            path: Path to a PNG or JPEG image.

        Returns:
            A one-element list holding the transcription.

        Raises:
            ExtractionError: If the file cannot be read or the model call fails.
        """
        check_readable_file(path, self._max_size, "Image")

        try:
            image_bytes = path.read_bytes()
        except OSError as e:
            raise ExtractionError(f"Cannot read image file {path.name}: {e}") from e

        media_type = guess_media_type(path) or "image/jpeg"
        data_url = f"data:{media_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"

        logger.info("Transcribing image %s via %s", path.name, self._model)
        text = normalize_whitespace(self._call_chat(data_url))
        if not text:
            raise ExtractionError(
                f"Vision model {self._model} returned no text for {path.name}",
                retryable=True,
            )

        logger.info("Transcribed %s: %d chars", path.name, len(text))
        return [
            Page(
                text=text,
                metadata={
                    "source": str(path),
                    "page": 1,
                    "total_pages": 1,
                    "extraction": "vision",
                    "vision_model": self._model,
                },
            )
        ]

    def supported_media_types(self) -> frozenset[str]:
        """Return supported media types."""
        return frozenset({"image/png", "image/jpeg", "image/jpg"})

    def _call_chat(self, data_url: str) -> str:
        """Call the /chat/completions endpoint with the image attached.

        Returns:
            The assistant message text (possibly empty).

        Raises:
            ExtractionError: On connection, timeout, HTTP or format errors.
        """
        url = f"{self._base_url}/chat/completions"
        payload = json.dumps(
            {
                "model": self._model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": TRANSCRIPTION_PROMPT},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    }
                ],
            }
        ).encode("utf-8")

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        req = Request(url, data=payload, headers=headers)

        try:
            with urlopen(req, timeout=self._timeout) as resp:
                body = resp.read()
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ExtractionError(
                f"Vision API returned invalid JSON from {url}", retryable=True
            ) from e
        except HTTPError as e:
            raise ExtractionError(
                f"Vision API error (HTTP {e.code}): {e.reason}", retryable=True
            ) from e
        except TimeoutError as e:
            raise ExtractionError(
                f"Vision API timed out after {self._timeout}s", retryable=True
            ) from e
        except (ConnectionError, URLError) as e:
            if isinstance(getattr(e, "reason", None), TimeoutError):
                msg = f"Vision API timed out after {self._timeout}s"
            else:
                msg = f"Vision API not reachable at {self._base_url}. Error: {e}"
            raise ExtractionError(msg, retryable=True) from e

        return _message_text(data, url)


def _message_text(data: Any, url: str) -> str:
    """Pull the assistant text out of a chat completion response."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ExtractionError(
            f"Unexpected response format from {url}: missing message content",
            retryable=True,
        ) from e

    if content is None:
        return ""
    if isinstance(content, list):
        # Some providers return content as a list of typed parts
        return "\n".join(
            str(part.get("text", "")) for part in content if isinstance(part, dict)
        )
    return str(content)
