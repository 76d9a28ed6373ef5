import asyncio
import base64
from typing import List, Optional

from loguru import logger

from rcsq.providers.base import FaceDetectionProvider, ImageEmbeddingProvider
from rcsq.video_pipeline.core.models import ExtractedFrame, ProcessedFace
from rcsq.video_pipeline.core.usage.usage_tracker import UsageTracker, estimate_image_tokens
from rcsq.video_pipeline.core.worker_pool import ProgressCallback, run_indexed_pool
from rcsq.video_pipeline.models import Face, ImageData, ModelVector, Timestamp
from rcsq.video_pipeline.utils.helper import format_face_id, format_frame_id
from .face_cropper import DEFAULT_MAX_EMBEDDING_HEIGHT, crop_face, image_dimensions
from .face_geometry import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_CROP_PADDING,
    DEFAULT_DEDUP_WINDOW_SEC,
    DEFAULT_IOU_THRESHOLD,
    deduplicate_faces,
    filter_detections,
)

DEFAULT_FACE_DETECTION_CONCURRENCY = 5


class FacePipeline:
    """
    Best-effort face extraction over the extracted frame set.

    Detection runs on a bounded pool and a failing frame simply yields no
    faces. Surviving crops are deduplicated across frames by IoU, then
    embedded one at a time.
    """

    def __init__(
        self,
        face_detection_provider: FaceDetectionProvider,
        image_embedding_provider: ImageEmbeddingProvider,
        usage_tracker: UsageTracker,
        embedding_model: str,
        concurrency: int = DEFAULT_FACE_DETECTION_CONCURRENCY,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        crop_padding: float = DEFAULT_CROP_PADDING,
        max_embedding_height: int = DEFAULT_MAX_EMBEDDING_HEIGHT,
        iou_threshold: float = DEFAULT_IOU_THRESHOLD,
        dedup_window_sec: float = DEFAULT_DEDUP_WINDOW_SEC,
    ):
        self.face_detection_provider = face_detection_provider
        self.image_embedding_provider = image_embedding_provider
        self.usage_tracker = usage_tracker
        self.embedding_model = embedding_model
        self.concurrency = concurrency
        self.confidence_threshold = confidence_threshold
        self.crop_padding = crop_padding
        self.max_embedding_height = max_embedding_height
        self.iou_threshold = iou_threshold
        self.dedup_window_sec = dedup_window_sec

    async def _detect_in_frame(self, frame: ExtractedFrame, index: int) -> List[ProcessedFace]:
        frame_id = format_frame_id(index)
        try:
            width, height = await asyncio.to_thread(image_dimensions, frame.image_bytes)
            detections = await self.face_detection_provider.detect_faces(frame.image_bytes)
        except Exception as e:
            logger.warning(f"Face detection failed for {frame_id} at {frame.timestamp_sec}s: {e}")
            return []

        faces = []
        for detected in filter_detections(detections, width, height, self.confidence_threshold):
            try:
                original, for_embedding = await asyncio.to_thread(
                    crop_face,
                    frame.image_bytes,
                    detected.bounding_box,
                    self.crop_padding,
                    self.max_embedding_height,
                )
            except Exception as e:
                logger.warning(f"Failed to crop face in {frame_id} at {frame.timestamp_sec}s: {e}")
                continue
            faces.append(
                ProcessedFace(
                    timestamp_sec=frame.timestamp_sec,
                    bounding_box=detected.bounding_box,
                    frame_id=frame_id,
                    image_bytes=original,
                    embedding_image_bytes=for_embedding,
                    confidence=detected.confidence,
                )
            )
        return faces

    async def detect(
        self,
        frames: List[ExtractedFrame],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ProcessedFace]:
        """Detect and crop faces in every frame, in frame order."""
        per_frame = await run_indexed_pool(
            len(frames),
            lambda index: self._detect_in_frame(frames[index], index),
            self.concurrency,
            on_progress,
        )
        faces = [face for frame_faces in per_frame for face in frame_faces]
        logger.info(f"Found {len(faces)} faces in {len(frames)} frames")
        return faces

    async def embed(
        self,
        faces: List[ProcessedFace],
        rcsq_video_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Face]:
        results = []
        for position, face in enumerate(faces):
            embedded = await self.image_embedding_provider.image_embedding(face.embedding_image_bytes)
            embedding_b64_length = len(base64.b64encode(face.embedding_image_bytes))
            self.usage_tracker.record(
                self.embedding_model,
                input_tokens=embedded.total_tokens or estimate_image_tokens(embedding_b64_length),
            )
            results.append(
                Face(
                    face_id=format_face_id(position),
                    rcsq_video_id=rcsq_video_id,
                    frame_id=face.frame_id,
                    time=Timestamp(timestamp_sec=face.timestamp_sec),
                    image=ImageData(
                        encoding="image/jpeg",
                        data_base64=base64.b64encode(face.image_bytes).decode("utf-8"),
                    ),
                    face_embedding=ModelVector(model=self.embedding_model, vector=embedded.vector),
                )
            )
            if on_progress is not None:
                await on_progress(position + 1, len(faces))
        return results

    async def process(
        self,
        frames: List[ExtractedFrame],
        rcsq_video_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Face]:
        """
        Run detection, dedup and embedding.

        Progress is reported on one 0-100 scale: detection covers the first
        half and embedding the second.
        """
        if not frames:
            return []

        async def detection_progress(completed: int, total: int):
            if on_progress is not None:
                await on_progress(completed, total * 2)

        async def embedding_progress(completed: int, total: int):
            if on_progress is not None:
                await on_progress(total + completed, total * 2)

        detected = await self.detect(frames, detection_progress)
        if not detected:
            logger.info("No faces detected in any frame")
            return []

        unique = deduplicate_faces(detected, self.iou_threshold, self.dedup_window_sec)
        logger.info(f"Reduced {len(detected)} faces to {len(unique)} unique faces")

        faces = await self.embed(unique, rcsq_video_id, embedding_progress)
        logger.info(f"Processed {len(faces)} unique faces")
        return faces
