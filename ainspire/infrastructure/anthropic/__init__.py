"""
Anthropic Claude API client wrapper.

Implements the ImageClassifier protocol from core.classification.
"""

from .client import (
    AnthropicConfig,
    AnthropicImageClassifier,
    MockImageClassifier,
    RateLimitExceeded,
    create_image_classifier,
)

__all__ = [
    "AnthropicConfig",
    "AnthropicImageClassifier",
    "MockImageClassifier",
    "RateLimitExceeded",
    "create_image_classifier",
]
