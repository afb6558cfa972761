"""
Anthropic Claude API client wrapper.

This module provides a thin wrapper around the Anthropic SDK that:
1. Implements our ImageClassifier protocol
2. Handles API-specific details (base64 encoding, message format)
3. Maps SDK errors onto our error taxonomy (credential vs. everything else)
4. Enables easy mocking for tests

The API key can change at runtime (the user re-enters it after a
rejection), so the SDK client is rebuilt whenever the key is replaced.
"""

import base64
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Optional

import anthropic
from anthropic import APIError, AuthenticationError, PermissionDeniedError, RateLimitError

from ...core.classification.classifier import (
    CLASSIFICATION_PROMPT,
    SYSTEM_PROMPT,
    ClassifierError,
    CredentialedClassifier,
    InvalidCredentialError,
    parse_classification_response,
)
from ...core.collection.models import Classification

logger = logging.getLogger(__name__)


class RateLimitExceeded(ClassifierError):
    """Raised when we hit rate limits."""
    pass


@dataclass
class AnthropicConfig:
    """
    Configuration for the Anthropic classifier.

    api_key may be empty at startup; calls fail with
    InvalidCredentialError until one is provided.
    """
    api_key: str = ""
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 512  # labels are a handful of words
    temperature: float = 0.0  # same still, same labels

    def __post_init__(self) -> None:
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")


class AnthropicImageClassifier:
    """
    Implementation of ImageClassifier using Claude.

    This class knows about Anthropic's API format but not about queues.
    It sends one still with the classification prompt and parses the JSON
    it gets back.
    """

    def __init__(self, config: AnthropicConfig) -> None:
        self._config = config
        self._client: Optional[anthropic.AsyncAnthropic] = None
        self.set_api_key(config.api_key)

    @property
    def has_api_key(self) -> bool:
        return self._client is not None

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Swap the credential used for subsequent calls."""
        self._config.api_key = (api_key or "").strip()
        if self._config.api_key:
            self._client = anthropic.AsyncAnthropic(api_key=self._config.api_key)
        else:
            self._client = None

    async def classify(self, image_data: bytes) -> Optional[Classification]:
        """
        Send one still to Claude for labeling.

        Returns None when the reply holds no usable JSON.
        """
        if not image_data:
            raise ValueError("Image data is required")
        if self._client is None:
            raise InvalidCredentialError("Invalid API key: no API key configured")

        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": self._detect_image_type(image_data),
                    "data": base64.b64encode(image_data).decode("utf-8"),
                },
            },
            {
                "type": "text",
                "text": CLASSIFICATION_PROMPT,
            },
        ]

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": content}
                ],
            )
        except (AuthenticationError, PermissionDeniedError) as e:
            logger.error("API key rejected", extra={"status": e.status_code})
            raise InvalidCredentialError(f"Invalid API key: {e.message}")
        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded. Please try again later.")
        except APIError as e:
            logger.error("API error", extra={"error": str(e), "status": getattr(e, "status_code", None)})
            raise ClassifierError(f"API error: {e.message}")

        return parse_classification_response(self._extract_text_response(response))

    def _detect_image_type(self, image_data: bytes) -> str:
        """
        Detect image MIME type from magic bytes.

        Stills come from FFmpeg as JPEG, but imported collections can
        carry other formats.
        """
        if image_data[:3] == b'\xff\xd8\xff':
            return "image/jpeg"
        elif image_data[:8] == b'\x89PNG\r\n\x1a\n':
            return "image/png"
        elif image_data[:6] in (b'GIF87a', b'GIF89a'):
            return "image/gif"
        elif image_data[:4] == b'RIFF' and image_data[8:12] == b'WEBP':
            return "image/webp"
        else:
            return "image/jpeg"

    def _extract_text_response(self, response) -> str:
        """Extract text content from API response."""
        if not response.content:
            return ""

        text_blocks = [
            block.text
            for block in response.content
            if hasattr(block, 'text')
        ]

        return "\n".join(text_blocks)


class MockImageClassifier:
    """
    Classifier for local development without API calls.

    Labels are picked from a hash of the image bytes and a call counter,
    so even identical placeholder stills spread across the filters.
    """

    LABELS = {
        "composition": ["Close-Up", "Medium Shot", "Wide Shot", "Low Angle"],
        "action": ["Static", "Walking", "Dialogue"],
        "lighting": ["High-Key", "Low-Key", "Natural Light"],
        "color": ["Warm Tones", "Cool Tones", "Desaturated"],
        "setting": ["Urban", "Indoor", "Nature"],
    }

    def __init__(self) -> None:
        self.calls = 0
        logger.info("Initialized mock image classifier")

    @property
    def has_api_key(self) -> bool:
        return True

    def set_api_key(self, api_key: Optional[str]) -> None:
        pass

    async def classify(self, image_data: bytes) -> Optional[Classification]:
        self.calls += 1
        digest = hashlib.sha256(image_data + self.calls.to_bytes(4, "big")).digest()
        labels = {
            key: values[digest[index] % len(values)]
            for index, (key, values) in enumerate(self.LABELS.items())
        }
        return Classification.from_mapping(labels)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_image_classifier(
    api_key: Optional[str] = None,
    model: str = "claude-sonnet-4-20250514",
    max_tokens: int = 512,
    mock_mode: bool = False,
) -> CredentialedClassifier:
    """
    Factory function to create a configured classifier.

    Reads the API key from the parameter or the ANTHROPIC_API_KEY
    environment variable. A missing key is allowed; it can be supplied
    later through set_api_key.
    """
    if mock_mode:
        return MockImageClassifier()

    key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")
    config = AnthropicConfig(api_key=key, model=model, max_tokens=max_tokens)
    return AnthropicImageClassifier(config)
