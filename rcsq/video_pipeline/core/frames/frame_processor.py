import base64
from typing import List, Optional

from loguru import logger

from rcsq.providers.base import ImageEmbeddingProvider, VisionProvider
from rcsq.video_pipeline.core.models import ExtractedFrame
from rcsq.video_pipeline.core.usage.usage_tracker import (
    CAPTION_PROMPT_TOKENS,
    UsageTracker,
    estimate_image_tokens,
    estimate_text_tokens,
)
from rcsq.video_pipeline.core.worker_pool import ProgressCallback, run_indexed_pool
from rcsq.video_pipeline.models import Caption, Frame, ImageData, ModelVector, Timestamp
from rcsq.video_pipeline.prompts import CAPTION_USER_PROMPT, CAPTIONING_SYSTEM_PROMPT
from rcsq.video_pipeline.utils.helper import format_frame_id

DEFAULT_FRAME_CONCURRENCY = 6


class FrameProcessor:
    """
    Captions and embeds every extracted frame on a bounded worker pool.

    Output order always matches input order. A failure on any frame fails
    the whole batch.
    """

    def __init__(
        self,
        vision_provider: VisionProvider,
        image_embedding_provider: ImageEmbeddingProvider,
        usage_tracker: UsageTracker,
        caption_model: str,
        embedding_model: str,
        concurrency: int = DEFAULT_FRAME_CONCURRENCY,
    ):
        self.vision_provider = vision_provider
        self.image_embedding_provider = image_embedding_provider
        self.usage_tracker = usage_tracker
        self.caption_model = caption_model
        self.embedding_model = embedding_model
        self.concurrency = concurrency

    async def _process_frame(self, frame: ExtractedFrame, index: int, rcsq_video_id: str) -> Frame:
        image_base64 = base64.b64encode(frame.image_bytes).decode("utf-8")
        image_tokens = estimate_image_tokens(len(image_base64))

        captioned = await self.vision_provider.caption_image(
            frame.image_bytes,
            prompt=CAPTION_USER_PROMPT,
            system_prompt=CAPTIONING_SYSTEM_PROMPT,
        )
        caption = captioned["caption"]
        usage = captioned.get("usage") or {}
        self.usage_tracker.record(
            self.caption_model,
            input_tokens=usage.get("prompt_tokens") or image_tokens + CAPTION_PROMPT_TOKENS,
            output_tokens=usage.get("completion_tokens") or estimate_text_tokens(caption),
        )

        embedded = await self.image_embedding_provider.image_embedding(frame.image_bytes)
        self.usage_tracker.record(self.embedding_model, input_tokens=embedded.total_tokens or image_tokens)

        return Frame(
            frame_id=format_frame_id(index),
            rcsq_video_id=rcsq_video_id,
            time=Timestamp(timestamp_sec=frame.timestamp_sec),
            image=ImageData(encoding="image/jpeg", data_base64=image_base64),
            caption=Caption(text=caption),
            image_embedding=ModelVector(model=self.embedding_model, vector=embedded.vector),
        )

    async def process(
        self,
        frames: List[ExtractedFrame],
        rcsq_video_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Frame]:
        if not frames:
            return []

        async def handle(index: int) -> Frame:
            try:
                return await self._process_frame(frames[index], index, rcsq_video_id)
            except Exception as e:
                logger.error(f"Error processing frame {index} at {frames[index].timestamp_sec}s: {e}")
                raise

        results = await run_indexed_pool(len(frames), handle, self.concurrency, on_progress)
        logger.info(f"Processed {len(results)} frames")
        return results
