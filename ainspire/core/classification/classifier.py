"""
The classifier seam and the prompt it is driven with.

The prompt lives here, not in config, because it defines what the labels
mean. Changing it changes what the product does.
"""

import json
import logging
import re
from typing import Optional, Protocol

from ..collection.models import Category, Classification

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ClassifierError(Exception):
    """Raised when a classification call fails."""
    pass


class InvalidCredentialError(ClassifierError):
    """
    The API credential was rejected.

    Every later call would fail the same way, so the queue treats this
    as fatal for everything still waiting.
    """
    pass


_CREDENTIAL_SIGNATURES = (
    "invalid api key",
    "invalid x-api-key",
    "api key not valid",
    "authentication_error",
    "permission_error",
    "permission denied",
)


def is_credential_error(exc: BaseException) -> bool:
    """True when an error means the credential is invalid or revoked."""
    if isinstance(exc, InvalidCredentialError):
        return True
    message = str(exc).lower()
    return any(signature in message for signature in _CREDENTIAL_SIGNATURES)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class ImageClassifier(Protocol):
    """
    Anything that can label a still.

    Returns None when the model declines to answer. Raises
    InvalidCredentialError for credential failures and ClassifierError
    (or anything else) for the rest.
    """

    async def classify(self, image_data: bytes) -> Optional[Classification]:
        ...


class CredentialedClassifier(ImageClassifier, Protocol):
    """A classifier whose API key can be swapped at runtime."""

    @property
    def has_api_key(self) -> bool:
        ...

    def set_api_key(self, api_key: Optional[str]) -> None:
        ...


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are an expert film analyst and cinematographer. You label film stills so they can be filed in a reference library."""


CLASSIFICATION_PROMPT = """Analyze the provided image and classify it.
Describe each category with a short, concise term. If a criterion is not applicable, omit it from the result.

Categories:
1. composition: (e.g., Close-Up, Medium Shot, Long Shot, Wide Shot, Over-the-Shoulder, Point of View, Low Angle, High Angle, Dutch Angle)
2. action: (e.g., Static, Walking, Running, Jumping, Dialogue, Subtle Movement, Fast Paced)
3. lighting: (e.g., High-Key, Low-Key, Backlight, Silhouette, Natural Light, Artificial Light, Hard Light, Soft Light)
4. color: (e.g., Monochromatic, Analogous, Complementary, Triadic, Warm Tones, Cool Tones, Saturated, Desaturated)
5. setting: (e.g., Urban, Rural, Indoor, Outdoor, Nature, Sci-Fi, Fantasy)

Respond with a single JSON object and nothing else. Its keys must be a subset of:
""" + ", ".join(f'"{category.value}"' for category in Category)


_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def parse_classification_response(text: str) -> Optional[Classification]:
    """
    Turn the model's reply into a Classification.

    Models sometimes wrap JSON in a markdown fence; that is tolerated.
    Anything that isn't a JSON object is treated as "no answer".
    """
    text = (text or "").strip()
    if not text:
        return None

    fenced = _FENCE_PATTERN.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Classifier reply is not JSON", extra={"reply_prefix": text[:80]})
        return None

    try:
        return Classification.from_mapping(payload)
    except ValueError:
        logger.warning("Classifier reply is not a JSON object", extra={"reply_prefix": text[:80]})
        return None
