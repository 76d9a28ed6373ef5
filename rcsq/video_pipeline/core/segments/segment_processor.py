from typing import List, Optional

from loguru import logger

from rcsq.exceptions import MalformedResponseException
from rcsq.providers.base import EmbeddingProvider
from rcsq.providers.provider_models import TranscriptSegment
from rcsq.video_pipeline.core.usage.usage_tracker import UsageTracker, estimate_text_tokens
from rcsq.video_pipeline.core.worker_pool import ProgressCallback
from rcsq.video_pipeline.models import ModelVector, Segment, TimeRange, Transcript
from rcsq.video_pipeline.utils.helper import log_prob_to_confidence, round2


def find_timeline_issues(ordered: List[TranscriptSegment]) -> List[str]:
    """Describe segments with an empty time range or a gap in ordinals."""
    issues = []
    for position, seg in enumerate(ordered):
        if seg.start_sec >= seg.end_sec:
            issues.append(f"segment {seg.ordinal_index} has start {seg.start_sec}s not before end {seg.end_sec}s")
        if position and seg.ordinal_index != ordered[position - 1].ordinal_index + 1:
            issues.append(
                f"segment ordinal {seg.ordinal_index} does not follow {ordered[position - 1].ordinal_index}"
            )
    return issues


class SegmentProcessor:
    """Embeds transcript segments in one batched call and builds output segments."""

    def __init__(self, embedding_provider: EmbeddingProvider, usage_tracker: UsageTracker, model_name: str):
        self.embedding_provider = embedding_provider
        self.usage_tracker = usage_tracker
        self.model_name = model_name

    async def process(
        self,
        transcript_segments: List[TranscriptSegment],
        rcsq_video_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Segment]:
        if not transcript_segments:
            logger.info("No transcript segments to embed")
            return []

        ordered = sorted(transcript_segments, key=lambda seg: seg.ordinal_index)
        for issue in find_timeline_issues(ordered):
            logger.warning(f"Transcript timeline: {issue}")
        texts = [seg.text for seg in ordered]

        batch = await self.embedding_provider.batch_embedding(texts)

        # Providers may reorder items; map them back by input index
        vectors = [None] * len(texts)
        for item in batch.items:
            if not 0 <= item.index < len(texts) or vectors[item.index] is not None:
                raise MalformedResponseException(
                    f"Embedding item index {item.index} is out of range or repeated",
                    service=self.model_name,
                )
            vectors[item.index] = item.vector
        missing = [i for i, vector in enumerate(vectors) if vector is None]
        if missing:
            raise MalformedResponseException(
                f"Missing embeddings for {len(missing)} of {len(texts)} segments",
                service=self.model_name,
                details={"missing_indices": missing[:20]},
            )

        input_tokens = batch.total_tokens or estimate_text_tokens(" ".join(texts))
        self.usage_tracker.record(batch.model or self.model_name, input_tokens=input_tokens)

        segments = []
        for position, (seg, vector) in enumerate(zip(ordered, vectors)):
            segments.append(
                Segment(
                    segment_id=position + 1,
                    rcsq_video_id=rcsq_video_id,
                    time=TimeRange(start_sec=round2(seg.start_sec), end_sec=round2(seg.end_sec)),
                    transcript=Transcript(
                        text=seg.text,
                        avg_confidence=log_prob_to_confidence(seg.avg_log_probability),
                    ),
                    text_embedding=ModelVector(model=self.model_name, vector=vector),
                )
            )
            if on_progress is not None:
                await on_progress(position + 1, len(ordered))

        logger.info(f"Embedded {len(segments)} transcript segments")
        return segments
