import json
from typing import Any, Dict, List, Optional

from loguru import logger

from rcsq.exceptions import MalformedResponseException, ValidationException
from rcsq.providers.base import LLMProvider
from rcsq.video_pipeline.core.usage.usage_tracker import (
    TOPIC_SYSTEM_PROMPT_TOKENS,
    UsageTracker,
    estimate_text_tokens,
)
from rcsq.video_pipeline.models import Segment, Topic, TopicSummary
from rcsq.video_pipeline.prompts import (
    SUMMARISATION_SYSTEM_PROMPT,
    TOPIC_EXTRACTION_SYSTEM_PROMPT,
    build_summarisation_user_message,
    build_topic_user_message,
)
from rcsq.video_pipeline.utils.helper import format_segment_id, format_topic_id

UNTITLED_TOPIC = "Untitled Topic"


def _coerce_segment_ids(raw: Dict[str, Any]) -> List[str]:
    for key in ("segmentIds", "segment_ids"):
        value = raw.get(key)
        if isinstance(value, list):
            return [str(segment_id) for segment_id in value]
    return []


def normalize_topics(parsed: Any, service: str = None) -> List[Dict[str, Any]]:
    """
    Normalize a decoded topic payload into ``label/description/summary/segment_ids`` dicts.

    Accepts a bare list or an object wrapping the list under ``topics``.
    Anything else is a malformed response.
    """
    if isinstance(parsed, list):
        raw_topics = parsed
    elif isinstance(parsed, dict) and isinstance(parsed.get("topics"), list):
        raw_topics = parsed["topics"]
    else:
        raise MalformedResponseException(
            "Invalid response format: expected array of topics",
            service=service,
            details={"payload_type": type(parsed).__name__},
        )

    topics = []
    for position, raw in enumerate(raw_topics):
        if not isinstance(raw, dict):
            raise MalformedResponseException(
                f"Topic at position {position} is not an object",
                service=service,
            )
        topics.append(
            {
                "label": str(raw.get("label") or UNTITLED_TOPIC),
                "description": str(raw.get("description") or ""),
                "summary": str(raw.get("summary") or ""),
                "segment_ids": _coerce_segment_ids(raw),
            }
        )
    return topics


def parse_topic_response(content: str, service: str = None) -> List[Dict[str, Any]]:
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedResponseException(
            f"Failed to parse JSON response from model: {e}",
            service=service,
            details={"content_preview": content[:200]},
        )
    return normalize_topics(parsed, service)


class TopicExtractor:
    """Single topic-extraction call over all segments of a video."""

    def __init__(self, llm_provider: LLMProvider, usage_tracker: UsageTracker, model_name: str):
        self.llm_provider = llm_provider
        self.usage_tracker = usage_tracker
        self.model_name = model_name

    async def extract(self, segments: List[Segment], rcsq_video_id: str) -> List[Topic]:
        if not segments:
            logger.info("No segments available, skipping topic extraction")
            return []

        segment_data = [(format_segment_id(seg.segment_id - 1), seg.transcript.text) for seg in segments]
        user_message = build_topic_user_message(segment_data)

        response = await self.llm_provider.chat_completion(
            [
                {"role": "system", "content": TOPIC_EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            response_format={"type": "json_object"},
        )
        raw_topics = parse_topic_response(response["content"], self.model_name)

        usage = response.get("usage") or {}
        self.usage_tracker.record(
            self.model_name,
            input_tokens=usage.get("prompt_tokens") or estimate_text_tokens(user_message) + TOPIC_SYSTEM_PROMPT_TOKENS,
            output_tokens=usage.get("completion_tokens") or estimate_text_tokens(json.dumps(raw_topics)),
        )

        topics = [
            Topic(
                topic_id=format_topic_id(position),
                rcsq_video_id=rcsq_video_id,
                label=raw["label"],
                description=raw["description"],
                summary=TopicSummary(text=raw["summary"], model=self.model_name),
                segment_ids=raw["segment_ids"],
            )
            for position, raw in enumerate(raw_topics)
        ]
        logger.info(f"Extracted {len(topics)} topics from {len(segments)} segments")
        return topics


async def summarise_segment(
    llm_provider: LLMProvider,
    text: str,
    usage_tracker: Optional[UsageTracker] = None,
    model_name: Optional[str] = None,
) -> str:
    """1-3 sentence summary of a single transcript segment."""
    if not text or not text.strip():
        raise ValidationException("Empty text provided for summarisation")

    user_message = build_summarisation_user_message(text)
    response = await llm_provider.chat_completion(
        [
            {"role": "system", "content": SUMMARISATION_SYSTEM_PROMPT},
            {"role": "user", "content": user_message},
        ]
    )
    summary = response["content"]

    if usage_tracker is not None:
        usage = response.get("usage") or {}
        usage_tracker.record(
            model_name or response.get("model") or "unknown",
            input_tokens=usage.get("prompt_tokens") or estimate_text_tokens(SUMMARISATION_SYSTEM_PROMPT + user_message),
            output_tokens=usage.get("completion_tokens") or estimate_text_tokens(summary),
        )
    return summary
