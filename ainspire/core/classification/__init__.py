"""
Classification: the classifier protocol, its prompt, and the job queue.
"""

from .classifier import (
    CLASSIFICATION_PROMPT,
    SYSTEM_PROMPT,
    ClassifierError,
    CredentialedClassifier,
    ImageClassifier,
    InvalidCredentialError,
    is_credential_error,
    parse_classification_response,
)
from .queue import ClassificationQueueController

__all__ = [
    "CLASSIFICATION_PROMPT",
    "SYSTEM_PROMPT",
    "ClassifierError",
    "CredentialedClassifier",
    "ImageClassifier",
    "InvalidCredentialError",
    "is_credential_error",
    "parse_classification_response",
    "ClassificationQueueController",
]
