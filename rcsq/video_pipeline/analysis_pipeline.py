import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, List, Optional

from loguru import logger

from rcsq.config.settings import RCSQConfig
from rcsq.exceptions import ConfigurationException, PipelineStageException, ValidationException
from rcsq.providers.base import (
    EmbeddingProvider,
    FaceDetectionProvider,
    ImageEmbeddingProvider,
    LLMProvider,
    TranscriptionProvider,
    VisionProvider,
)
from rcsq.providers.factory import provider_factory
from rcsq.providers.provider_models import TranscriptionResult
from rcsq.utils.logging_config import log_manager
from rcsq.video_pipeline.core import progress as stages
from rcsq.video_pipeline.core.faces.face_pipeline import FacePipeline
from rcsq.video_pipeline.core.frames.frame_processor import FrameProcessor
from rcsq.video_pipeline.core.media.media_extractor import FfmpegMediaExtractor, MediaExtractor
from rcsq.video_pipeline.core.models import ExtractedFrame, TechnicalInfo
from rcsq.video_pipeline.core.progress import ProgressReporter, ProgressSink
from rcsq.video_pipeline.core.segments.segment_processor import SegmentProcessor
from rcsq.video_pipeline.core.topics.topic_extractor import TopicExtractor
from rcsq.video_pipeline.core.usage.usage_tracker import (
    UsageTracker,
    estimate_audio_tokens,
    estimate_text_tokens,
)
from rcsq.video_pipeline.models import (
    EmbeddingModel,
    Face,
    Frame,
    ModelsConfig,
    NamedModel,
    PipelineResult,
    ProcessingStats,
    Segment,
    Topic,
    TranscriptionModel,
    VideoHashes,
    VideoInfo,
    VideoSource,
    VideoTechnical,
)
from rcsq.video_pipeline.utils.helper import compute_md5, generate_video_id, round2

FACE_DETECTION_API = "DetectFaces"


@dataclass
class AnalysisContext:
    """State of a single pipeline run, filled in stage by stage."""

    video_bytes: bytes
    filename: str
    mime_type: str
    face_detection_enabled: bool
    frame_interval_sec: float
    max_frames: int
    started_at: float = field(default_factory=time.monotonic)
    current_stage: str = stages.INITIALIZING
    rcsq_video_id: Optional[str] = None
    md5: Optional[str] = None
    technical: Optional[TechnicalInfo] = None
    audio: Optional[bytes] = None
    transcription: Optional[TranscriptionResult] = None
    segments: List[Segment] = field(default_factory=list)
    topics: List[Topic] = field(default_factory=list)
    extracted_frames: List[ExtractedFrame] = field(default_factory=list)
    frames: List[Frame] = field(default_factory=list)
    faces: List[Face] = field(default_factory=list)


class AnalysisPipeline:
    """
    AnalysisPipeline turns one video into a PipelineResult: transcript segments,
    topics, captioned keyframes, deduplicated faces and token/cost usage.

    Stages run in a fixed order; frame processing and face detection share the
    extracted frame set and run concurrently. Any stage failure aborts the run
    with a PipelineStageException naming the stage. No partial result is
    returned.

    Providers and the media extractor default to the configured implementations
    and can be injected (e.g. for tests or alternative vendors).

    Example Usage:
    ---------------
    >>> from rcsq.video_pipeline import AnalysisPipeline
    >>> import asyncio
    >>>
    >>> async def run_analysis():
    >>>     pipeline = AnalysisPipeline()
    >>>     with open("lecture.mp4", "rb") as f:
    >>>         result = await pipeline(f.read(), "lecture.mp4", "video/mp4")
    >>>     await pipeline.close()
    >>>     print(result.stats.total_frames)
    >>>
    >>> asyncio.run(run_analysis())
    """

    def __init__(
        self,
        transcription_provider: Annotated[Optional[TranscriptionProvider], "Speech-to-text provider"] = None,
        llm_provider: Annotated[Optional[LLMProvider], "Chat provider used for topic extraction"] = None,
        vision_provider: Annotated[Optional[VisionProvider], "Frame captioning provider"] = None,
        embedding_provider: Annotated[Optional[EmbeddingProvider], "Batched text embedding provider"] = None,
        image_embedding_provider: Annotated[Optional[ImageEmbeddingProvider], "Frame/face embedding provider"] = None,
        face_detection_provider: Annotated[Optional[FaceDetectionProvider], "Face detection provider"] = None,
        media_extractor: Annotated[Optional[MediaExtractor], "Decoder for metadata, audio and frames"] = None,
        config: Annotated[Optional[RCSQConfig], "Loaded configuration; read from the environment if omitted"] = None,
        disable_console_log: Annotated[bool, "Boolean flag to disable console logs during the run"] = False,
    ):
        try:
            self.config = config or RCSQConfig()
        except Exception as e:
            logger.exception(f"Exception occurred while loading the RCSQ config: {e}")
            raise ConfigurationException(f"Failed to load configuration: {e}")

        if not disable_console_log:
            log_manager.enable_console(self.config.logging.level)
        else:
            log_manager.disable_console()
        self.logger = log_manager.get_logger()

        self._transcription_provider = transcription_provider
        self._llm_provider = llm_provider
        self._vision_provider = vision_provider
        self._embedding_provider = embedding_provider
        self._image_embedding_provider = image_embedding_provider
        self._face_detection_provider = face_detection_provider
        self.media_extractor = media_extractor or FfmpegMediaExtractor()

        openai_config = self.config.openai
        voyage_config = self.config.voyage
        self.transcription_model = openai_config.transcription_model
        self.topic_model = openai_config.topic_model
        self.caption_model = openai_config.caption_model
        self.summarisation_model = openai_config.summarisation_model
        self.text_embedding_model = voyage_config.text_model
        self.image_embedding_model = voyage_config.multimodal_model
        self.embedding_dimension = voyage_config.dimension

    # ------------------------------------------------------------------
    # Providers are created on first use so unused vendors need no credentials
    # ------------------------------------------------------------------
    @property
    def transcription_provider(self) -> TranscriptionProvider:
        if self._transcription_provider is None:
            self._transcription_provider = provider_factory.create_transcription_provider(config=self.config)
        return self._transcription_provider

    @property
    def llm_provider(self) -> LLMProvider:
        if self._llm_provider is None:
            self._llm_provider = provider_factory.create_llm_provider(model_name=self.topic_model, config=self.config)
        return self._llm_provider

    @property
    def vision_provider(self) -> VisionProvider:
        if self._vision_provider is None:
            self._vision_provider = provider_factory.create_vision_provider(
                model_name=self.caption_model, config=self.config
            )
        return self._vision_provider

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        if self._embedding_provider is None:
            self._embedding_provider = provider_factory.create_embedding_provider(config=self.config)
        return self._embedding_provider

    @property
    def image_embedding_provider(self) -> ImageEmbeddingProvider:
        if self._image_embedding_provider is None:
            self._image_embedding_provider = provider_factory.create_image_embedding_provider(config=self.config)
        return self._image_embedding_provider

    @property
    def face_detection_provider(self) -> FaceDetectionProvider:
        if self._face_detection_provider is None:
            self._face_detection_provider = provider_factory.create_face_detection_provider(config=self.config)
        return self._face_detection_provider

    async def close(self):
        """Close every provider that was created or injected."""
        for provider in (
            self._transcription_provider,
            self._llm_provider,
            self._vision_provider,
            self._embedding_provider,
            self._image_embedding_provider,
            self._face_detection_provider,
        ):
            if provider is None:
                continue
            try:
                await provider.close()
            except Exception as e:
                self.logger.warning(f"Failed to close {type(provider).__name__}: {e}")

    # ------------------------------------------------------------------
    # Stage plumbing
    # ------------------------------------------------------------------
    async def _run_stage(
        self,
        context: AnalysisContext,
        reporter: ProgressReporter,
        stage: str,
        work: Callable[[], Awaitable[Any]],
    ) -> Any:
        context.current_stage = stage
        self.logger.info(f"Starting stage: {stages.stage_label(stage)}")
        await reporter.report(stage, 0)
        try:
            result = await work()
        except PipelineStageException:
            raise
        except Exception as e:
            self.logger.exception(f"Stage '{stage}' failed: {e}")
            raise PipelineStageException(stage, e) from e
        await reporter.report(stage, 100)
        return result

    @staticmethod
    async def _gather_or_cancel(*coros) -> List[Any]:
        """Await coroutines together; the first failure cancels the rest."""
        tasks = [asyncio.ensure_future(coro) for coro in coros]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    async def _initialize(self, context: AnalysisContext):
        if not context.video_bytes:
            raise ValidationException("Empty video buffer provided")
        if context.frame_interval_sec <= 0:
            raise ValidationException("frame_interval_sec must be positive")
        if context.max_frames < 1:
            raise ValidationException("max_frames must be at least 1")

        context.rcsq_video_id = generate_video_id()
        context.md5 = await asyncio.to_thread(compute_md5, context.video_bytes)
        self.logger.info(f"Video ID: {context.rcsq_video_id}, MD5: {context.md5}")

    async def _transcribe(self, context: AnalysisContext, tracker: UsageTracker):
        transcription = await self.transcription_provider.transcribe(context.audio, mime_type="audio/wav")
        tracker.record(
            self.transcription_model,
            input_tokens=estimate_audio_tokens(context.technical.duration_sec),
            output_tokens=estimate_text_tokens(transcription.text),
        )
        self.logger.info(
            f"Transcribed {len(transcription.segments)} segments (language: {transcription.language})"
        )
        context.transcription = transcription

    def _models_descriptor(self, language: str) -> ModelsConfig:
        providers = self.config.providers
        return ModelsConfig(
            transcription=TranscriptionModel(provider="whisper", name=self.transcription_model, language=language),
            segment_summarisation=NamedModel(provider=providers.llm, name=self.summarisation_model),
            topic_extraction=NamedModel(provider=providers.llm, name=self.topic_model),
            text_embedding=EmbeddingModel(
                provider=providers.embedding, name=self.text_embedding_model, dimension=self.embedding_dimension
            ),
            image_embedding=EmbeddingModel(
                provider=providers.image_embedding, name=self.image_embedding_model, dimension=self.embedding_dimension
            ),
            captioning=NamedModel(provider=providers.vision, name=self.caption_model),
            face_detection=NamedModel(provider=providers.face_detection, name=FACE_DETECTION_API),
        )

    def _assemble(self, context: AnalysisContext, tracker: UsageTracker) -> PipelineResult:
        usage = tracker.finalize()
        processing_time = round2(time.monotonic() - context.started_at)
        technical = context.technical

        return PipelineResult(
            created_at=datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            video=VideoInfo(
                source=VideoSource(
                    filename=context.filename,
                    filesize_bytes=len(context.video_bytes),
                    mime_type=context.mime_type,
                ),
                technical=VideoTechnical(
                    duration_sec=technical.duration_sec,
                    frame_rate_fps=technical.frame_rate_fps,
                    width=technical.width,
                    height=technical.height,
                    audio_sample_rate_hz=technical.audio_sample_rate_hz,
                    audio_channels=technical.audio_channels,
                ),
                hashes=VideoHashes(md5=context.md5),
                rcsq_video_id=context.rcsq_video_id,
            ),
            models=self._models_descriptor(context.transcription.language or "en"),
            segments=context.segments,
            topics=context.topics,
            frames=context.frames,
            faces=context.faces,
            stats=ProcessingStats(
                total_segments=len(context.segments),
                total_topics=len(context.topics),
                total_frames=len(context.frames),
                total_faces=len(context.faces),
                processing_time_sec=processing_time,
                usage=usage,
            ),
        )

    async def _run(self, context: AnalysisContext, reporter: ProgressReporter) -> PipelineResult:
        tracker = UsageTracker()
        pipeline_config = self.config.pipeline

        await self._run_stage(context, reporter, stages.INITIALIZING, lambda: self._initialize(context))

        async def probe():
            context.technical = await self.media_extractor.probe(context.video_bytes)

        await self._run_stage(context, reporter, stages.EXTRACTING_METADATA, probe)

        async def extract_audio():
            context.audio = await self.media_extractor.extract_audio(context.video_bytes)

        await self._run_stage(context, reporter, stages.EXTRACTING_AUDIO, extract_audio)
        await self._run_stage(context, reporter, stages.TRANSCRIBING, lambda: self._transcribe(context, tracker))

        async def process_segments():
            segment_processor = SegmentProcessor(self.embedding_provider, tracker, self.text_embedding_model)
            context.segments = await segment_processor.process(
                context.transcription.segments,
                context.rcsq_video_id,
                reporter.reporter_for(stages.PROCESSING_SEGMENTS),
            )

        await self._run_stage(context, reporter, stages.PROCESSING_SEGMENTS, process_segments)

        async def extract_topics():
            if not context.segments:
                return
            topic_extractor = TopicExtractor(self.llm_provider, tracker, self.topic_model)
            context.topics = await topic_extractor.extract(context.segments, context.rcsq_video_id)

        await self._run_stage(context, reporter, stages.EXTRACTING_TOPICS, extract_topics)

        async def extract_frames():
            context.extracted_frames = await self.media_extractor.extract_frames(
                context.video_bytes,
                context.frame_interval_sec,
                context.max_frames,
                duration_sec=context.technical.duration_sec,
            )
            self.logger.info(f"Extracted {len(context.extracted_frames)} frames")

        await self._run_stage(context, reporter, stages.EXTRACTING_FRAMES, extract_frames)

        async def process_frames():
            frame_processor = FrameProcessor(
                self.vision_provider,
                self.image_embedding_provider,
                tracker,
                caption_model=self.caption_model,
                embedding_model=self.image_embedding_model,
                concurrency=pipeline_config.frame_concurrency,
            )
            context.frames = await frame_processor.process(
                context.extracted_frames,
                context.rcsq_video_id,
                reporter.reporter_for(stages.PROCESSING_FRAMES),
            )

        stage_runs = [self._run_stage(context, reporter, stages.PROCESSING_FRAMES, process_frames)]

        if context.face_detection_enabled:

            async def detect_faces():
                face_pipeline = FacePipeline(
                    self.face_detection_provider,
                    self.image_embedding_provider,
                    tracker,
                    embedding_model=self.image_embedding_model,
                    concurrency=pipeline_config.face_detection_concurrency,
                    confidence_threshold=pipeline_config.face_confidence_threshold,
                    crop_padding=pipeline_config.face_crop_padding,
                    max_embedding_height=pipeline_config.face_embedding_max_height,
                    iou_threshold=pipeline_config.face_iou_threshold,
                    dedup_window_sec=pipeline_config.face_dedup_window_sec,
                )
                context.faces = await face_pipeline.process(
                    context.extracted_frames,
                    context.rcsq_video_id,
                    reporter.reporter_for(stages.DETECTING_FACES),
                )

            stage_runs.append(self._run_stage(context, reporter, stages.DETECTING_FACES, detect_faces))
        else:
            self.logger.info("Face detection disabled, skipping")

        await self._gather_or_cancel(*stage_runs)

        async def finalize():
            return self._assemble(context, tracker)

        result = await self._run_stage(context, reporter, stages.FINALIZING, finalize)

        usage = result.stats.usage
        self.logger.info(
            f"Complete! Processed {result.stats.total_segments} segments, {result.stats.total_topics} topics, "
            f"{result.stats.total_frames} frames, {result.stats.total_faces} faces "
            f"in {result.stats.processing_time_sec}s"
        )
        self.logger.info(
            f"Total tokens: {usage.total_tokens}, Estimated cost: ${usage.total_estimated_cost_usd:.4f}"
        )
        return result

    async def __call__(
        self,
        video_bytes: bytes,
        filename: str,
        mime_type: str,
        face_detection_enabled: Optional[bool] = None,
        frame_interval_sec: Optional[float] = None,
        max_frames: Optional[int] = None,
        progress_sink: Optional[ProgressSink] = None,
        timeout_sec: Optional[float] = None,
    ) -> PipelineResult:
        """
        Run every stage over ``video_bytes`` and return the assembled result.

        Unset options fall back to ``PipelineConfig``. Raises
        PipelineStageException when any stage fails or the run times out.
        """
        pipeline_config = self.config.pipeline
        context = AnalysisContext(
            video_bytes=video_bytes,
            filename=filename,
            mime_type=mime_type,
            face_detection_enabled=(
                pipeline_config.face_detection_enabled if face_detection_enabled is None else face_detection_enabled
            ),
            frame_interval_sec=frame_interval_sec if frame_interval_sec is not None else pipeline_config.frame_interval_sec,
            max_frames=max_frames if max_frames is not None else pipeline_config.max_frames,
        )
        reporter = ProgressReporter(progress_sink)
        timeout_sec = timeout_sec if timeout_sec is not None else pipeline_config.run_timeout_sec

        if not timeout_sec:
            return await self._run(context, reporter)
        try:
            return await asyncio.wait_for(self._run(context, reporter), timeout=timeout_sec)
        except asyncio.TimeoutError as e:
            self.logger.error(f"Run timed out after {timeout_sec}s during stage '{context.current_stage}'")
            raise PipelineStageException(
                context.current_stage, TimeoutError(f"run exceeded {timeout_sec}s")
            ) from e


async def run_pipeline(
    video_bytes: bytes,
    filename: str,
    mime_type: str,
    face_detection_enabled: Optional[bool] = None,
    frame_interval_sec: Optional[float] = None,
    max_frames: Optional[int] = None,
    progress_sink: Optional[ProgressSink] = None,
    **pipeline_kwargs,
) -> PipelineResult:
    """
    Single-call entry point: build a pipeline, run it and release its providers.

    ``pipeline_kwargs`` are forwarded to :class:`AnalysisPipeline` (providers,
    media extractor, config, ``disable_console_log``). Options left as ``None`` come from
    ``PipelineConfig``.
    """
    pipeline = AnalysisPipeline(**pipeline_kwargs)
    try:
        return await pipeline(
            video_bytes,
            filename,
            mime_type,
            face_detection_enabled=face_detection_enabled,
            frame_interval_sec=frame_interval_sec,
            max_frames=max_frames,
            progress_sink=progress_sink,
        )
    finally:
        await pipeline.close()


async def run_pipeline_without_faces(
    video_bytes: bytes,
    filename: str,
    mime_type: str,
    frame_interval_sec: Optional[float] = None,
    max_frames: Optional[int] = None,
    progress_sink: Optional[ProgressSink] = None,
    **pipeline_kwargs,
) -> PipelineResult:
    """Same as :func:`run_pipeline` with face detection forced off."""
    return await run_pipeline(
        video_bytes,
        filename,
        mime_type,
        face_detection_enabled=False,
        frame_interval_sec=frame_interval_sec,
        max_frames=max_frames,
        progress_sink=progress_sink,
        **pipeline_kwargs,
    )
