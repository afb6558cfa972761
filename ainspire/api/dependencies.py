"""
FastAPI dependency injection.

The pipeline is stateful (two queues and a collection), so unlike a
per-request service it is built once per application and kept on
app.state. Dependencies hand routes the pieces they need, which also
makes it easy for tests to build an app around fakes.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Query, Request

from ..config.settings import Settings
from ..core.classification.classifier import CredentialedClassifier, is_credential_error
from ..core.extraction.sampler import FrameSampler, VideoDecoder
from ..core.i18n import Translator
from ..core.pipeline import ReferenceCollector
from ..infrastructure.anthropic.client import create_image_classifier
from ..infrastructure.credentials.store import CredentialStore, create_credential_store
from ..infrastructure.video.decoder import create_video_decoder

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything a running application shares across requests."""
    settings: Settings
    collector: ReferenceCollector
    classifier: CredentialedClassifier
    decoder: VideoDecoder
    credentials: CredentialStore
    translator: Translator

    def set_credential(self, token: str) -> None:
        self.credentials.set(token)
        self.classifier.set_api_key(token.strip())
        self.collector.acknowledge_error()
        self.collector.resume()

    def clear_credential(self) -> None:
        self.credentials.clear()
        self.classifier.set_api_key(None)

    @property
    def has_credential(self) -> bool:
        return self.classifier.has_api_key

    def take_fatal_error(self) -> Optional[Exception]:
        """
        Collect a credential failure reported by the classification queue.

        The rejected key is forgotten so the client is prompted for a new
        one; the error is returned once and then cleared.
        """
        error = self.collector.classification_queue.last_error
        if error is None:
            return None

        self.collector.acknowledge_error()
        if is_credential_error(error):
            logger.warning("Clearing rejected credential")
            self.clear_credential()
        return error


def build_services(
    settings: Settings,
    classifier: Optional[CredentialedClassifier] = None,
    decoder: Optional[VideoDecoder] = None,
    credentials: Optional[CredentialStore] = None,
) -> AppServices:
    """
    Assemble the pipeline from settings.

    Any component can be passed in explicitly; tests use this to swap in
    fakes without touching environment variables.
    """
    credentials = credentials or create_credential_store(settings.credential_file)

    if classifier is None:
        classifier = create_image_classifier(
            api_key=credentials.get() or settings.anthropic_api_key,
            model=settings.anthropic_model,
            max_tokens=settings.anthropic_max_tokens,
            mock_mode=settings.classifier_mock_mode,
        )

    if decoder is None:
        decoder = create_video_decoder(
            mock_mode=settings.video_mock_mode,
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
        )

    collector = ReferenceCollector(
        sampler=FrameSampler(decoder),
        classifier=classifier,
        interval_seconds=settings.clamp_interval(settings.capture_interval_seconds),
    )

    logger.info(
        "Pipeline assembled",
        extra={
            "classifier": type(classifier).__name__,
            "decoder": type(decoder).__name__,
            "interval": collector.video_queue.interval_seconds,
        },
    )

    return AppServices(
        settings=settings,
        collector=collector,
        classifier=classifier,
        decoder=decoder,
        credentials=credentials,
        translator=Translator(settings.default_language),
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_collector(services: Annotated[AppServices, Depends(get_services)]) -> ReferenceCollector:
    return services.collector


def get_translator(
    services: Annotated[AppServices, Depends(get_services)],
    lang: Annotated[Optional[str], Query(description="Message language (en, ko)")] = None,
) -> Translator:
    """Translator for the request's language, falling back to the default."""
    if lang and lang in services.translator.languages:
        return services.translator.for_language(lang)
    return services.translator


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

ServicesDep = Annotated[AppServices, Depends(get_services)]
CollectorDep = Annotated[ReferenceCollector, Depends(get_collector)]
TranslatorDep = Annotated[Translator, Depends(get_translator)]
