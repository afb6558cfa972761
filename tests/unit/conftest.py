"""
Shared fakes for the pipeline tests.

Fakes rather than mocks: each one is a tiny working implementation of
the protocol it stands in for, and records what happened to it.
"""

import asyncio
from typing import Callable, Optional, Union

import pytest

from ainspire.core.collection.models import (
    Classification,
    ClassificationJob,
    ReferenceImage,
    VideoSource,
)
from ainspire.core.extraction.sampler import CapturedStill, VideoDecodeError

JPEG = b"\xff\xd8\xff\xe0fake-jpeg"


class FakeSession:
    """Decode session with a fixed duration and scripted failures."""

    def __init__(self, decoder: "FakeDecoder", name: str, duration: float, fail_at: Optional[float] = None):
        self._decoder = decoder
        self.name = name
        self._duration = duration
        self._fail_at = fail_at
        self.captured: list[float] = []
        self.close_calls = 0

    @property
    def duration_seconds(self) -> float:
        return self._duration

    async def capture(self, timestamp_seconds: float) -> CapturedStill:
        if self._decoder.gate is not None:
            await self._decoder.gate.wait()
        await asyncio.sleep(0)
        if self._fail_at is not None and timestamp_seconds >= self._fail_at:
            raise VideoDecodeError(f"corrupt frame at {timestamp_seconds}")
        self.captured.append(timestamp_seconds)
        return CapturedStill(
            image_data=JPEG + f"{self.name}@{timestamp_seconds}".encode(),
            timestamp_seconds=timestamp_seconds + self._decoder.snap_offset,
        )

    async def close(self) -> None:
        self.close_calls += 1
        self._decoder.active -= 1


class FakeDecoder:
    """
    Opens FakeSessions. Durations are looked up by video name.

    Tracks how many sessions are open at once so tests can assert that
    videos are never sampled concurrently.
    """

    def __init__(
        self,
        durations: Optional[dict[str, float]] = None,
        unreadable: Optional[set[str]] = None,
        fail_at: Optional[dict[str, float]] = None,
        snap_offset: float = 0.0,
    ):
        self.durations = durations or {}
        self.unreadable = unreadable or set()
        self.fail_at = fail_at or {}
        self.snap_offset = snap_offset
        self.sessions: list[FakeSession] = []
        self.opened: list[str] = []
        self.active = 0
        self.max_active = 0
        self.gate: Optional[asyncio.Event] = None

    async def open(self, source: VideoSource) -> FakeSession:
        await asyncio.sleep(0)
        self.opened.append(source.name)
        if source.name in self.unreadable:
            raise VideoDecodeError(f"cannot decode {source.name}")
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        session = FakeSession(self, source.name, self.durations.get(source.name, 10.0), self.fail_at.get(source.name))
        self.sessions.append(session)
        return session


Outcome = Union[Classification, None, Exception]


class FakeClassifier:
    """
    Classifier that answers from a script.

    script is called with the call index and the image bytes and returns a
    Classification, None, or an exception instance to raise.
    """

    def __init__(self, script: Optional[Callable[[int, bytes], Outcome]] = None):
        self._script = script or (lambda index, data: Classification(composition="Close-Up"))
        self.calls: list[bytes] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.gate: Optional[asyncio.Event] = None
        self.api_key: Optional[str] = "test-key"

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key or None

    async def classify(self, image_data: bytes) -> Optional[Classification]:
        index = len(self.calls)
        self.calls.append(image_data)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            outcome = self._script(index, image_data)
        finally:
            self.in_flight -= 1

        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_job(number: int, source: str = "clip.mp4") -> ClassificationJob:
    return ClassificationJob(
        id=f"job-{number}",
        image_data=JPEG + str(number).encode(),
        timestamp_seconds=float(number),
        source_name=source,
    )


def make_image(image_id: str, source: str = "clip.mp4", timestamp: float = 0.0, **labels: str) -> ReferenceImage:
    return ReferenceImage(
        id=image_id,
        image_data=JPEG + image_id.encode(),
        classifications=Classification(**labels),
        timestamp_seconds=timestamp,
        source_name=source,
    )


def video(name: str) -> VideoSource:
    return VideoSource(name=name, data=b"video-bytes:" + name.encode())


@pytest.fixture
def decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()
