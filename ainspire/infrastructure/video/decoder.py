"""
Video decoding using FFmpeg.

Implements the VideoDecoder protocol from core.extraction.sampler:
1. open: write the upload to a temp file and read its duration (FFprobe)
2. capture: seek to a timestamp and grab one JPEG still (FFmpeg)
3. close: delete the temp file

FFmpeg works best with file paths, so the temp file is the decode handle
for the lifetime of a session. Each capture is a separate FFmpeg run with
input seeking (-ss before -i), which keeps memory flat no matter how long
the video is.

Frame captures run as asyncio subprocesses so an abandoned capture can be
killed at once. The temp file write and the FFprobe call go through
asyncio.to_thread; neither blocks the event loop.
"""

import asyncio
import base64
import json
import logging
import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from ...core.collection.models import VideoSource
from ...core.extraction.sampler import CapturedStill, DecodeSession, VideoDecodeError, VideoDecoder

logger = logging.getLogger(__name__)

# showinfo reports the presentation time of the frame it actually emitted
_PTS_TIME_PATTERN = re.compile(r"pts_time:\s*(-?[\d.]+)")


class FFmpegDecodeSession:
    """One video opened for seeking. Owns its temp file until close()."""

    def __init__(
        self,
        ffmpeg_path: str,
        video_path: str,
        duration_seconds: float,
        jpeg_quality: int = 2,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._ffmpeg = ffmpeg_path
        self._video_path = video_path
        self._duration = duration_seconds
        self._quality = jpeg_quality
        self._timeout = timeout_seconds
        self._closed = False

    @property
    def duration_seconds(self) -> float:
        return self._duration

    async def capture(self, timestamp_seconds: float) -> CapturedStill:
        """
        Extract one JPEG at the timestamp.

        -copyts keeps the original timeline so showinfo's pts_time is the
        real position, which can differ from the target when the codec
        snaps to a nearby frame.
        """
        if self._closed:
            raise VideoDecodeError("Decode session is closed")

        cmd = [
            self._ffmpeg,
            "-hide_banner",
            "-ss", f"{timestamp_seconds:.3f}",
            "-copyts",
            "-i", self._video_path,
            "-frames:v", "1",
            "-vf", "showinfo",
            "-q:v", str(self._quality),
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "pipe:1",
        ]

        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            raise VideoDecodeError(f"Timed out decoding frame at {timestamp_seconds}s")
        except asyncio.CancelledError:
            # the sampler abandoned this frame; don't leave FFmpeg reading the file
            await _kill(process)
            raise

        if process.returncode != 0 or not stdout:
            tail = stderr.decode(errors="replace")[-500:]
            raise VideoDecodeError(f"Failed to extract frame at {timestamp_seconds}s: {tail}")

        return CapturedStill(
            image_data=stdout,
            timestamp_seconds=self._achieved_position(stderr, timestamp_seconds),
        )

    def _achieved_position(self, stderr: bytes, requested: float) -> float:
        match = _PTS_TIME_PATTERN.search(stderr.decode(errors="replace"))
        if not match:
            return requested
        try:
            return max(0.0, float(match.group(1)))
        except ValueError:
            return requested

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            os.unlink(self._video_path)
        except FileNotFoundError:
            pass
        logger.debug("Decode session closed", extra={"path": self._video_path})


class FFmpegVideoDecoder:
    """
    Video decoder using FFmpeg/FFprobe.

    Construction checks that FFmpeg is runnable so a missing binary fails
    at startup instead of on the first upload.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        """
        Initialize decoder with FFmpeg paths.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path

        try:
            result = subprocess.run(
                [self._ffmpeg, "-version"],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg not working properly")
            logger.info("FFmpeg video decoder initialized")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Install with: apt-get install ffmpeg"
            )

    async def open(self, source: VideoSource) -> DecodeSession:
        suffix = Path(source.name).suffix or ".mp4"
        video_path = await asyncio.to_thread(_write_temp_file, source.data, suffix)

        try:
            duration = await self._probe_duration(video_path)
        except Exception:
            os.unlink(video_path)
            raise

        return FFmpegDecodeSession(self._ffmpeg, video_path, duration)

    async def _probe_duration(self, video_path: str) -> float:
        """
        Read the duration with FFprobe.

        Format duration is preferred; some containers only carry it on
        the video stream.
        """
        cmd = [
            self._ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            video_path
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run,
                cmd,
                capture_output=True,
                text=True,
                timeout=30
            )
        except subprocess.TimeoutExpired:
            raise VideoDecodeError("FFprobe timed out")

        if result.returncode != 0:
            raise VideoDecodeError(f"FFprobe failed: {result.stderr}")

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise VideoDecodeError(f"FFprobe returned invalid JSON: {e}")

        video_stream: Optional[dict] = None
        for stream in info.get("streams", []):
            if stream.get("codec_type") == "video":
                video_stream = stream
                break

        if not video_stream:
            raise VideoDecodeError("No video stream found")

        duration = _parse_float(info.get("format", {}).get("duration"))
        if duration == 0:
            duration = _parse_float(video_stream.get("duration"))

        return duration


def _write_temp_file(data: bytes, suffix: str) -> str:
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        tmp.write(data)
        return tmp.name


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


def _parse_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ---------------------------------------------------------------------------
# Mock decoder
# ---------------------------------------------------------------------------

# a valid 1x1 JPEG, returned for every mock capture
PLACEHOLDER_JPEG = base64.b64decode(
    "/9j/4AAQSkZJRgABAQAAAQABAAD/2wBDAAgGBgcGBQgHBwcJCQgKDBQNDAsLDBkSEw8UHRof"
    "Hh0aHBwgJC4nICIsIxwcKDcpLDAxNDQ0Hyc5PTgyPC4zNDL/wAALCAABAAEBAREA/8QAHwAA"
    "AQUBAQEBAQEAAAAAAAAAAAECAwQFBgcICQoL/8QAtRAAAgEDAwIEAwUFBAQAAAF9AQIDAAQR"
    "BRIhMUEGE1FhByJxFDKBkaEII0KxwRVS0fAkM2JyggkKFhcYGRolJicoKSo0NTY3ODk6Q0RF"
    "RkdISUpTVFVWV1hZWmNkZWZnaGlqc3R1dnd4eXqDhIWGh4iJipKTlJWWl5iZmqKjpKWmp6ip"
    "qrKztLW2t7i5usLDxMXGx8jJytLT1NXW19jZ2uHi4+Tl5ufo6erx8vP09fb3+Pn6/9oACAEB"
    "AAA/APvTKKACiigD/9k="
)


class MockDecodeSession:
    def __init__(self, duration_seconds: float) -> None:
        self._duration = duration_seconds
        self.closed = False

    @property
    def duration_seconds(self) -> float:
        return self._duration

    async def capture(self, timestamp_seconds: float) -> CapturedStill:
        await asyncio.sleep(0)
        return CapturedStill(image_data=PLACEHOLDER_JPEG, timestamp_seconds=timestamp_seconds)

    async def close(self) -> None:
        self.closed = True


class MockVideoDecoder:
    """
    Mock decoder for local development without FFmpeg.

    Every video is treated as a fixed-length clip of placeholder frames.
    Empty uploads fail to open, like an unreadable file would.
    """

    def __init__(self, duration_seconds: float = 30.0):
        self._duration = duration_seconds
        logger.info("Initialized mock video decoder")

    async def open(self, source: VideoSource) -> DecodeSession:
        if not source.data:
            raise VideoDecodeError(f"Empty video: {source.name}")
        return MockDecodeSession(self._duration)


def create_video_decoder(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
) -> VideoDecoder:
    """
    Factory function for the video decoder.

    Args:
        mock_mode: If True, return mock decoder (no FFmpeg required)
        ffmpeg_path: Path to ffmpeg binary
        ffprobe_path: Path to ffprobe binary
    """
    if mock_mode:
        return MockVideoDecoder()

    return FFmpegVideoDecoder(ffmpeg_path=ffmpeg_path, ffprobe_path=ffprobe_path)
