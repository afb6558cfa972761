"""
Localized messages for status and alerts.

A Translator is constructed explicitly and passed to whoever needs it.
Catalogs are loaded once at construction; switching language just picks
a different loaded catalog.
"""

import logging
import re
from typing import Any, Optional

from .pipeline import PipelineStatus

logger = logging.getLogger(__name__)


EN_MESSAGES: dict[str, Any] = {
    "categories": {
        "composition": "Composition",
        "action": "Action",
        "lighting": "Lighting",
        "color": "Color",
        "setting": "Setting",
    },
    "status": {
        "extracting": "Extracting frames from {{videoName}}... ({{queueLength}} more video(s) in queue)",
        "classifying": "Classifying frame from {{sourceName}} ({{queueSize}} more frame(s) in queue)...",
    },
    "alerts": {
        "invalidApiKey": "Invalid API Key. Please check your key and try again.",
        "invalidJson": "Invalid JSON file format.",
        "jsonParseError": "Failed to parse JSON file.",
        "noImagesToDownload": "There are no images to download.",
        "missingApiKey": "Enter your Anthropic API key to get started.",
    },
}

KO_MESSAGES: dict[str, Any] = {
    "categories": {
        "composition": "구도",
        "action": "액션",
        "lighting": "조명",
        "color": "색상",
        "setting": "배경",
    },
    "status": {
        "extracting": "{{videoName}}에서 프레임 추출 중... (대기열에 {{queueLength}}개의 비디오 남음)",
        "classifying": "{{sourceName}}의 프레임 분류 중 (대기열에 {{queueSize}}개의 프레임 남음)...",
    },
    "alerts": {
        "invalidApiKey": "잘못된 API 키입니다. 키를 확인하고 다시 시도하세요.",
        "invalidJson": "잘못된 JSON 파일 형식입니다.",
        "jsonParseError": "JSON 파일을 분석하지 못했습니다.",
        "noImagesToDownload": "다운로드할 이미지가 없습니다.",
        "missingApiKey": "시작하려면 Anthropic API 키를 입력하세요.",
    },
}

CATALOGS: dict[str, dict[str, Any]] = {
    "en": EN_MESSAGES,
    "ko": KO_MESSAGES,
}

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


class Translator:
    """Looks up dotted message keys ("status.extracting") in one language."""

    def __init__(self, language: str = "en", catalogs: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self._catalogs = dict(catalogs if catalogs is not None else CATALOGS)
        self._language = "en"
        self.language = language

    @property
    def languages(self) -> list[str]:
        return sorted(self._catalogs)

    @property
    def language(self) -> str:
        return self._language

    @language.setter
    def language(self, value: str) -> None:
        if value not in self._catalogs:
            raise ValueError(f"Unsupported language: {value}")
        self._language = value

    def for_language(self, language: Optional[str]) -> "Translator":
        """A translator sharing these catalogs, switched to another language."""
        if not language or language == self._language:
            return self
        return Translator(language, self._catalogs)

    def t(self, key: str, **params: Any) -> str:
        """
        Translate a key, filling {{name}} placeholders from params.

        Unknown keys come back as the key itself.
        """
        node: Any = self._catalogs[self._language]
        for part in key.split("."):
            node = node.get(part) if isinstance(node, dict) else None

        if not isinstance(node, str):
            logger.warning("Translation key not found", extra={"key": key, "language": self._language})
            return key

        return _PLACEHOLDER.sub(
            lambda match: str(params.get(match.group(1), match.group(0))),
            node,
        )


def describe_status(status: PipelineStatus, translator: Translator) -> Optional[str]:
    """The progress line to show while either queue is busy."""
    if status.current_video is not None:
        return translator.t(
            "status.extracting",
            videoName=status.current_video,
            queueLength=status.videos_pending,
        )
    if status.current_job_source is not None:
        return translator.t(
            "status.classifying",
            sourceName=status.current_job_source,
            queueSize=status.jobs_pending,
        )
    return None
