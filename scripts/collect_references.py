#!/usr/bin/env python3
"""
Build a reference collection from local video files, without the API.

Runs the same pipeline the server runs: each video is sampled at the
given interval, every still is classified, and the result is written in
the collection export format (importable through the API).

Usage:
    python scripts/collect_references.py trailer.mp4 scene2.mov -o collection.json
    python scripts/collect_references.py clips/*.mp4 --interval 5 --zip stills.zip

Requires:
    - .env file or environment with ANTHROPIC_API_KEY (unless --mock)
    - ffmpeg and ffprobe on PATH (unless --mock)
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

from dotenv import load_dotenv

from ainspire.config.settings import Settings
from ainspire.core.collection.models import VideoSource
from ainspire.core.collection.transfer import build_image_archive, export_collection
from ainspire.core.extraction.sampler import FrameSampler
from ainspire.core.pipeline import ReferenceCollector
from ainspire.infrastructure.anthropic.client import create_image_classifier
from ainspire.infrastructure.video.decoder import create_video_decoder

# Load environment variables
load_dotenv()

logger = logging.getLogger("collect_references")


def load_sources(paths: list[str]) -> list[VideoSource]:
    """Read video files, skipping anything that doesn't look like video."""
    sources = []
    for raw_path in paths:
        path = Path(raw_path)
        if not path.is_file():
            logger.warning("Skipping missing file: %s", path)
            continue

        content_type, _ = mimetypes.guess_type(path.name)
        if not content_type or not content_type.startswith("video/"):
            logger.warning("Skipping non-video file: %s", path)
            continue

        sources.append(VideoSource(name=path.name, data=path.read_bytes(), content_type=content_type))
    return sources


async def collect(args: argparse.Namespace) -> int:
    settings = Settings()

    sources = load_sources(args.videos)
    if not sources:
        print("No readable video files given.", file=sys.stderr)
        return 2

    classifier = create_image_classifier(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        max_tokens=settings.anthropic_max_tokens,
        mock_mode=args.mock,
    )
    decoder = create_video_decoder(
        mock_mode=args.mock,
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
    )

    collector = ReferenceCollector(
        sampler=FrameSampler(decoder),
        classifier=classifier,
        interval_seconds=settings.clamp_interval(args.interval),
    )

    collector.add_videos(sources)
    await collector.wait_idle()

    error = collector.classification_queue.last_error
    if error is not None:
        print(f"Classification stopped: {error}", file=sys.stderr)
        return 1

    images = collector.store.images
    Path(args.output).write_text(export_collection(images), encoding="utf-8")
    print(f"Wrote {len(images)} images to {args.output}")

    if args.zip:
        if images:
            Path(args.zip).write_bytes(build_image_archive(images))
            print(f"Wrote image archive to {args.zip}")
        else:
            print("No images to archive.", file=sys.stderr)

    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Collect classified reference stills from videos")
    parser.add_argument("videos", nargs="+", help="Video files to sample")
    parser.add_argument("-o", "--output", default="ainspire-collection.json", help="Collection JSON to write")
    parser.add_argument("-i", "--interval", type=float, default=3.0, help="Seconds between captured frames (1-30)")
    parser.add_argument("--zip", help="Also write every still into this zip file")
    parser.add_argument("--mock", action="store_true", help="Use placeholder frames and labels (no FFmpeg, no API)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    if args.interval <= 0:
        parser.error("--interval must be positive")

    return asyncio.run(collect(args))


if __name__ == "__main__":
    sys.exit(main())
