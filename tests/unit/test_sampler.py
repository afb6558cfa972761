"""
Unit tests for frame sampling.

Uses an in-memory decoder so the timestamp walk, cancellation and
session cleanup can be checked without FFmpeg.
"""

import asyncio

import pytest

from ainspire.core.extraction.sampler import FrameSampler, sample_timestamps

from conftest import FakeDecoder, video


class TestSampleTimestamps:
    """Seek targets for a given duration and interval."""

    def test_targets_below_duration(self):
        assert sample_timestamps(12, 5) == [0.0, 5.0, 10.0]

    def test_duration_boundary_is_exclusive(self):
        """10 is not < 10, so only 0 and 5."""
        assert sample_timestamps(10, 5) == [0.0, 5.0]

    def test_short_video_yields_first_frame(self):
        assert sample_timestamps(2, 5) == [0.0]

    def test_unknown_duration_yields_first_frame(self):
        assert sample_timestamps(0, 3) == [0.0]

    def test_targets_are_exact_multiples(self):
        """No drift from repeated float addition."""
        targets = sample_timestamps(100, 0.1)
        assert len(targets) == 1000
        assert targets[-1] == 999 * 0.1

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            sample_timestamps(10, 0)


class TestFrameSampler:
    """FrameSampler.extract"""

    @pytest.mark.asyncio
    async def test_captures_at_each_interval(self):
        """A 12s video at 5s yields frames at 0, 5 and 10, in order."""
        decoder = FakeDecoder(durations={"a.mp4": 12.0})
        frames = []

        delivered = await FrameSampler(decoder).extract(video("a.mp4"), 5.0, frames.append)

        assert delivered == 3
        assert [frame.timestamp_seconds for frame in frames] == [0.0, 5.0, 10.0]
        assert {frame.source_name for frame in frames} == {"a.mp4"}
        assert decoder.sessions[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_frames_carry_achieved_position(self):
        """The decoder's actual position is reported, not the target."""
        decoder = FakeDecoder(durations={"a.mp4": 6.0}, snap_offset=0.04)
        frames = []

        await FrameSampler(decoder).extract(video("a.mp4"), 3.0, frames.append)

        assert [frame.timestamp_seconds for frame in frames] == pytest.approx([0.04, 3.04])

    @pytest.mark.asyncio
    async def test_unloadable_video_yields_nothing(self):
        decoder = FakeDecoder(unreadable={"broken.mp4"})
        frames = []

        delivered = await FrameSampler(decoder).extract(video("broken.mp4"), 3.0, frames.append)

        assert delivered == 0
        assert frames == []

    @pytest.mark.asyncio
    async def test_decode_error_keeps_earlier_frames(self):
        """A corrupt frame ends the video early; earlier frames stand."""
        decoder = FakeDecoder(durations={"a.mp4": 20.0}, fail_at={"a.mp4": 10.0})
        frames = []

        delivered = await FrameSampler(decoder).extract(video("a.mp4"), 5.0, frames.append)

        assert delivered == 2
        assert [frame.timestamp_seconds for frame in frames] == [0.0, 5.0]
        assert decoder.sessions[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_before_start_captures_nothing(self):
        decoder = FakeDecoder(durations={"a.mp4": 20.0})
        cancel = asyncio.Event()
        cancel.set()
        frames = []

        delivered = await FrameSampler(decoder).extract(video("a.mp4"), 5.0, frames.append, cancel)

        assert delivered == 0
        assert decoder.sessions[0].captured == []
        assert decoder.sessions[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_during_capture_suppresses_that_frame(self):
        """A capture already in progress when cancel lands is not delivered."""
        decoder = FakeDecoder(durations={"a.mp4": 20.0})
        cancel = asyncio.Event()
        frames = []

        def on_frame(frame):
            frames.append(frame)
            # cancel while the next capture is in flight
            decoder.gate = asyncio.Event()

        task = asyncio.create_task(
            FrameSampler(decoder).extract(video("a.mp4"), 5.0, on_frame, cancel)
        )
        while decoder.gate is None:
            await asyncio.sleep(0)

        cancel.set()
        decoder.gate.set()
        delivered = await task

        assert delivered == 1
        assert len(frames) == 1
        assert decoder.sessions[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_cancel_abandons_a_stuck_capture(self):
        """Cancel returns control and closes the session without the decoder finishing."""
        decoder = FakeDecoder(durations={"a.mp4": 20.0})
        decoder.gate = asyncio.Event()
        cancel = asyncio.Event()
        frames = []

        task = asyncio.create_task(
            FrameSampler(decoder).extract(video("a.mp4"), 5.0, frames.append, cancel)
        )
        while not decoder.sessions:
            await asyncio.sleep(0)

        cancel.set()
        delivered = await asyncio.wait_for(task, timeout=1.0)

        assert delivered == 0
        assert frames == []
        assert decoder.sessions[0].captured == []
        assert decoder.sessions[0].close_calls == 1
        assert not decoder.gate.is_set()

    @pytest.mark.asyncio
    async def test_on_frame_error_still_closes_session(self):
        decoder = FakeDecoder(durations={"a.mp4": 10.0})

        def explode(frame):
            raise RuntimeError("consumer failed")

        with pytest.raises(RuntimeError):
            await FrameSampler(decoder).extract(video("a.mp4"), 5.0, explode)

        assert decoder.sessions[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            await FrameSampler(FakeDecoder()).extract(video("a.mp4"), 0, lambda frame: None)
