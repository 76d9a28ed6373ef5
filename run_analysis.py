"""
Command-line entry point for the RCSQ video analysis pipeline.

Usage:
    python run_analysis.py lecture.mp4 --output lecture.rcsq.json --frame-interval 5
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from loguru import logger

from rcsq.exceptions import RCSQException
from rcsq.video_pipeline import run_pipeline


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Analyze a video into segments, topics, frames and faces")
    parser.add_argument("video", help="Path to the video file")
    parser.add_argument("--output", "-o", help="Where to write the JSON result (default: <video>.rcsq.json)")
    parser.add_argument("--frame-interval", type=float, default=None,
                        help="Seconds between extracted frames (default: FRAME_INTERVAL_SEC or 5)")
    parser.add_argument("--max-frames", type=int, default=None,
                        help="Maximum number of frames to extract (default: MAX_FRAMES or 1000)")
    parser.add_argument("--no-faces", action="store_true", help="Disable face detection")
    parser.add_argument("--quiet", action="store_true", help="Disable console logs")
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    args = parse_args(argv)

    video_path = Path(args.video)
    if not video_path.is_file():
        logger.error(f"Video not found: {video_path}")
        return 2

    output_path = Path(args.output) if args.output else video_path.with_suffix(".rcsq.json")
    mime_type = mimetypes.guess_type(video_path.name)[0] or "application/octet-stream"

    try:
        result = await run_pipeline(
            video_path.read_bytes(),
            video_path.name,
            mime_type,
            face_detection_enabled=False if args.no_faces else None,
            frame_interval_sec=args.frame_interval,
            max_frames=args.max_frames,
            disable_console_log=args.quiet,
        )
    except RCSQException as e:
        logger.error(f"Pipeline failed: {e.message}")
        return 1

    output_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"Wrote result to {output_path}")
    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
