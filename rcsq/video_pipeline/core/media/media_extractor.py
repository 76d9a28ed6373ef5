"""
Media extraction over the ffmpeg / ffprobe binaries.

The source video never touches disk: bytes are streamed to the tool's stdin
and results are read back from stdout (or stderr for the duration pass).
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import ffmpeg
from loguru import logger

from rcsq.exceptions import MediaProcessingException, ValidationException
from rcsq.utils.error_handler import log_exceptions
from rcsq.video_pipeline.core.models import ExtractedFrame, TechnicalInfo

_TIME_PATTERN = re.compile(r"time=(\d+):(\d+):(\d+)\.(\d+)")
_DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d+):(\d+)\.(\d+)")


def plan_frame_timestamps(duration_sec: float, interval_sec: float, max_frames: int) -> List[float]:
    """
    Timestamps at ``interval, 2*interval, ...`` strictly below ``duration_sec``.

    At most ``max_frames`` entries. When the video is shorter than one
    interval, a single timestamp at the midpoint is returned.
    """
    if interval_sec <= 0:
        raise ValidationException("interval_sec must be positive", details={"interval_sec": interval_sec})
    if max_frames < 1:
        raise ValidationException("max_frames must be at least 1", details={"max_frames": max_frames})
    if duration_sec <= 0:
        raise ValidationException("Could not determine video duration", details={"duration_sec": duration_sec})

    timestamps = []
    step = 1
    while len(timestamps) < max_frames:
        current = interval_sec * step
        if current >= duration_sec:
            break
        timestamps.append(round(current, 2))
        step += 1

    if not timestamps:
        timestamps.append(round(duration_sec / 2, 2))
    return timestamps


def parse_frame_rate(value: Optional[str]) -> float:
    """Parse ffprobe's rational ``"30000/1001"`` style rates."""
    if not value:
        return 0.0
    num, _, den = value.partition("/")
    try:
        numerator = float(num)
        denominator = float(den) if den else 0.0
    except ValueError:
        return 0.0
    return numerator / denominator if denominator else numerator


def _stamp_to_seconds(match) -> float:
    hours, minutes, seconds, centis = (int(part) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds + centis / 100


def parse_duration(stderr: str) -> Optional[float]:
    """
    Duration from an ffmpeg decode pass: the last ``time=`` progress stamp,
    falling back to the container's ``Duration:`` header.
    """
    stamps = list(_TIME_PATTERN.finditer(stderr))
    if stamps:
        return round(_stamp_to_seconds(stamps[-1]), 2)
    header = _DURATION_PATTERN.search(stderr)
    if header:
        return round(_stamp_to_seconds(header), 2)
    return None


class MediaExtractor(ABC):
    """Decodes technical metadata, audio and keyframes from video bytes."""

    @abstractmethod
    async def probe(self, video_bytes: bytes) -> TechnicalInfo:
        pass

    @abstractmethod
    async def extract_audio(self, video_bytes: bytes) -> bytes:
        """Mono 16 kHz WAV."""
        pass

    @abstractmethod
    async def extract_frames(
        self,
        video_bytes: bytes,
        interval_sec: float,
        max_frames: int,
        duration_sec: Optional[float] = None,
    ) -> List[ExtractedFrame]:
        pass


class FfmpegMediaExtractor(MediaExtractor):
    def __init__(self, ffmpeg_cmd: str = "ffmpeg", ffprobe_cmd: str = "ffprobe"):
        self.ffmpeg_cmd = ffmpeg_cmd
        self.ffprobe_cmd = ffprobe_cmd

    async def _run(self, args: Sequence[str], video_bytes: bytes, check: bool = True):
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MediaProcessingException(f"{args[0]} binary not found: {e}")

        stdout, stderr = await process.communicate(input=video_bytes)
        if check and process.returncode != 0:
            raise MediaProcessingException(
                f"{args[0]} exited with code {process.returncode}",
                details={"stderr": stderr.decode("utf-8", errors="replace")[-2000:]},
            )
        return stdout, stderr.decode("utf-8", errors="replace")

    @staticmethod
    def _require_bytes(video_bytes: bytes):
        if not video_bytes:
            raise ValidationException("Empty video buffer provided")

    @log_exceptions(custom_message="Failed to probe video")
    async def probe(self, video_bytes: bytes) -> TechnicalInfo:
        self._require_bytes(video_bytes)

        stdout, _ = await self._run(
            [self.ffprobe_cmd, "-v", "quiet", "-print_format", "json", "-show_streams", "-i", "pipe:0"],
            video_bytes,
        )
        try:
            streams = json.loads(stdout or b"{}").get("streams") or []
        except json.JSONDecodeError as e:
            raise MediaProcessingException(f"Failed to parse ffprobe output: {e}")

        video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
        audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)
        if video_stream is None:
            raise MediaProcessingException("No video stream found")

        frame_rate = parse_frame_rate(video_stream.get("r_frame_rate")) or parse_frame_rate(
            video_stream.get("avg_frame_rate")
        )

        # The container header is unreliable for piped input, decode the stream
        null_pass = ffmpeg.input("pipe:0").output("-", format="null").compile(cmd=self.ffmpeg_cmd)
        _, stderr = await self._run(null_pass, video_bytes, check=False)
        duration = parse_duration(stderr)
        if duration is None:
            logger.error(f"Could not parse duration from ffmpeg output: {stderr[:500]}")
            raise MediaProcessingException("Could not determine video duration")

        info = TechnicalInfo(
            duration_sec=duration,
            frame_rate_fps=round(frame_rate, 2),
            width=int(video_stream.get("width") or 0),
            height=int(video_stream.get("height") or 0),
            audio_sample_rate_hz=int(audio_stream.get("sample_rate") or 0) if audio_stream else 0,
            audio_channels=int(audio_stream.get("channels") or 0) if audio_stream else 0,
        )
        logger.info(
            f"Probed video: {info.duration_sec:.2f}s, {info.width}x{info.height} @ {info.frame_rate_fps} fps"
        )
        return info

    @log_exceptions(custom_message="Failed to extract audio")
    async def extract_audio(self, video_bytes: bytes) -> bytes:
        self._require_bytes(video_bytes)

        args = (
            ffmpeg.input("pipe:0")
            .output("pipe:1", vn=None, acodec="pcm_s16le", ar=16000, ac=1, format="wav")
            .compile(cmd=self.ffmpeg_cmd)
        )
        audio, _ = await self._run(args, video_bytes)
        if not audio:
            raise MediaProcessingException("No audio data extracted")
        logger.info(f"Extracted {len(audio)} bytes of WAV audio")
        return audio

    async def _extract_single_frame(self, video_bytes: bytes, timestamp_sec: float) -> bytes:
        args = (
            ffmpeg.input("pipe:0", ss=f"{timestamp_sec:.3f}")
            .output("pipe:1", vframes=1, format="image2pipe", vcodec="mjpeg", **{"q:v": 2})
            .compile(cmd=self.ffmpeg_cmd)
        )
        image, _ = await self._run(args, video_bytes)
        if not image:
            raise MediaProcessingException(f"No frame data at {timestamp_sec}s")
        return image

    @log_exceptions(custom_message="Failed to extract frames")
    async def extract_frames(
        self,
        video_bytes: bytes,
        interval_sec: float,
        max_frames: int,
        duration_sec: Optional[float] = None,
    ) -> List[ExtractedFrame]:
        self._require_bytes(video_bytes)
        if duration_sec is None:
            duration_sec = (await self.probe(video_bytes)).duration_sec

        timestamps = plan_frame_timestamps(duration_sec, interval_sec, max_frames)
        logger.info(
            f"Extracting {len(timestamps)} frames at {interval_sec}s intervals from {duration_sec:.1f}s video"
        )

        frames = []
        for timestamp in timestamps:
            image = await self._extract_single_frame(video_bytes, timestamp)
            frames.append(ExtractedFrame(timestamp_sec=timestamp, image_bytes=image))
        return frames
