import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from loguru import logger

# Stage identifiers, in run order
INITIALIZING = "initializing"
EXTRACTING_METADATA = "extracting_metadata"
EXTRACTING_AUDIO = "extracting_audio"
TRANSCRIBING = "transcribing"
PROCESSING_SEGMENTS = "processing_segments"
EXTRACTING_TOPICS = "extracting_topics"
EXTRACTING_FRAMES = "extracting_frames"
PROCESSING_FRAMES = "processing_frames"
DETECTING_FACES = "detecting_faces"
FINALIZING = "finalizing"

STAGE_ORDER = (
    INITIALIZING,
    EXTRACTING_METADATA,
    EXTRACTING_AUDIO,
    TRANSCRIBING,
    PROCESSING_SEGMENTS,
    EXTRACTING_TOPICS,
    EXTRACTING_FRAMES,
    PROCESSING_FRAMES,
    DETECTING_FACES,
    FINALIZING,
)

STAGE_LABELS: Dict[str, str] = {
    INITIALIZING: "Initializing pipeline",
    EXTRACTING_METADATA: "Analyzing video metadata",
    EXTRACTING_AUDIO: "Extracting audio track",
    TRANSCRIBING: "Transcribing with Whisper",
    PROCESSING_SEGMENTS: "Embedding transcript segments",
    EXTRACTING_TOPICS: "Extracting topics with GPT",
    EXTRACTING_FRAMES: "Extracting video frames",
    PROCESSING_FRAMES: "Captioning & embedding frames",
    DETECTING_FACES: "Detecting faces with Rekognition",
    FINALIZING: "Finalizing results",
}

ProgressSink = Callable[[str, int], Union[None, Awaitable[None]]]


def stage_label(stage: str) -> str:
    return STAGE_LABELS.get(stage, stage)


def fraction_to_percent(completed: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(completed / total * 100)


class ProgressReporter:
    """
    Forwards ``(stage, percent)`` events to an optional sink.

    Percent is clamped to 0-100 and never decreases within a stage. Sink
    failures are logged and otherwise ignored.
    """

    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink
        self._last: Dict[str, int] = {}

    def last_percent(self, stage: str) -> Optional[int]:
        return self._last.get(stage)

    async def report(self, stage: str, percent: float):
        value = int(round(min(100, max(0, percent))))
        value = max(value, self._last.get(stage, 0))
        self._last[stage] = value

        logger.info(f"{stage}: {value}%")
        if self.sink is None:
            return
        try:
            outcome = self.sink(stage, value)
            if asyncio.iscoroutine(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress sink failed for {stage} ({value}%): {e}")

    def reporter_for(self, stage: str) -> Callable[[int, int], Awaitable[None]]:
        """A ``(completed, total)`` callback bound to ``stage``."""

        async def _report(completed: int, total: int):
            await self.report(stage, fraction_to_percent(completed, total))

        return _report


@dataclass
class ProgressEvent:
    event: str
    data: Dict[str, Any] = field(default_factory=dict)


class ProgressStream:
    """
    Queue-backed progress sink that a consumer drains with ``async for``.

    Iteration ends after the terminal ``complete`` or ``error`` event.

    >>> stream = ProgressStream()
    >>> task = asyncio.create_task(stream.run(run_pipeline(..., progress_sink=stream)))
    >>> async for event in stream:
    ...     print(event.event, event.data)
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    async def __call__(self, stage: str, percent: int):
        if self._closed:
            return
        await self._queue.put(
            ProgressEvent(
                "progress",
                {"stage": stage, "label": stage_label(stage), "percent": percent, "timestamp": time.time()},
            )
        )

    async def complete(self, result: Any):
        await self._close(ProgressEvent("complete", {"result": result, "timestamp": time.time()}))

    async def fail(self, error: BaseException):
        data = {"message": str(error) or type(error).__name__, "timestamp": time.time()}
        stage = getattr(error, "stage", None)
        if stage:
            data["stage"] = stage
        await self._close(ProgressEvent("error", data))

    async def _close(self, event: ProgressEvent):
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            await self._queue.put(event)
        else:
            self._queue.put_nowait(event)

    async def run(self, awaitable: Awaitable[Any]) -> Any:
        """Await a pipeline run and publish its outcome as the terminal event."""
        try:
            result = await awaitable
        except BaseException as e:
            # Cancellation still closes the stream so consumers stop waiting
            await self.fail(e)
            raise
        await self.complete(result)
        return result

    def __aiter__(self):
        return self

    async def __anext__(self) -> ProgressEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        event = await self._queue.get()
        return event
