"""Tests for topic extraction and normalization."""

import json

import pytest

from rcsq.exceptions import MalformedResponseException, ValidationException
from rcsq.video_pipeline.core.segments.segment_processor import SegmentProcessor
from rcsq.video_pipeline.core.topics.topic_extractor import (
    UNTITLED_TOPIC,
    TopicExtractor,
    normalize_topics,
    parse_topic_response,
    summarise_segment,
)
from rcsq.video_pipeline.core.usage.usage_tracker import TOPIC_SYSTEM_PROMPT_TOKENS
from ..fakes import FakeEmbeddingProvider, FakeLLMProvider, make_segments

VIDEO_ID = "vid_1700000000_abcdef12"


class TestNormalizeTopics:
    """Tests for normalize_topics and parse_topic_response."""

    def test_bare_array(self) -> None:
        topics = normalize_topics([{"label": "A", "description": "d", "summary": "s", "segmentIds": ["seg_0001"]}])
        assert topics == [{"label": "A", "description": "d", "summary": "s", "segment_ids": ["seg_0001"]}]

    def test_wrapped_array(self) -> None:
        topics = normalize_topics({"topics": [{"label": "A"}, {"label": "B"}]})
        assert [t["label"] for t in topics] == ["A", "B"]

    def test_missing_fields_get_defaults(self) -> None:
        topic = normalize_topics([{}])[0]
        assert topic == {"label": UNTITLED_TOPIC, "description": "", "summary": "", "segment_ids": []}

    def test_snake_case_segment_ids(self) -> None:
        topic = normalize_topics([{"label": "A", "segment_ids": ["seg_0002", "seg_0003"]}])[0]
        assert topic["segment_ids"] == ["seg_0002", "seg_0003"]

    def test_non_list_segment_ids_become_empty(self) -> None:
        assert normalize_topics([{"segmentIds": "seg_0001"}])[0]["segment_ids"] == []

    def test_order_is_preserved(self) -> None:
        labels = ["Zeta", "Alpha", "Mu"]
        assert [t["label"] for t in normalize_topics([{"label": l} for l in labels])] == labels

    @pytest.mark.parametrize("payload", [{"result": []}, "topics", 42, None, {"topics": "none"}])
    def test_unexpected_shapes_are_malformed(self, payload) -> None:
        with pytest.raises(MalformedResponseException):
            normalize_topics(payload, service="gpt-4.1-nano")

    def test_non_object_topic_is_malformed(self) -> None:
        with pytest.raises(MalformedResponseException):
            normalize_topics([{"label": "A"}, "B"])

    def test_invalid_json_is_malformed(self) -> None:
        with pytest.raises(MalformedResponseException) as exc_info:
            parse_topic_response("```json [oops", service="gpt-4.1-nano")
        assert exc_info.value.error_code == "MALFORMED_RESPONSE"
        assert exc_info.value.service == "gpt-4.1-nano"


class TestTopicExtractor:
    """Tests for TopicExtractor.extract."""

    @pytest.fixture
    async def segments(self, tracker):
        processor = SegmentProcessor(FakeEmbeddingProvider(), tracker, "voyage-3-large")
        return await processor.process(make_segments(["Intro words.", "Gradient words."]), VIDEO_ID)

    async def test_builds_topics_in_returned_order(self, tracker, segments) -> None:
        llm = FakeLLMProvider()

        topics = await TopicExtractor(llm, tracker, "gpt-4.1-nano").extract(segments, VIDEO_ID)

        assert [t.topic_id for t in topics] == ["topic_0001", "topic_0002"]
        assert [t.label for t in topics] == ["Introduction", "Gradients"]
        assert topics[0].segment_ids == ["seg_0001"]
        assert topics[1].segment_ids == ["seg_0002"]
        assert topics[0].summary.model == "gpt-4.1-nano"
        assert all(t.rcsq_video_id == VIDEO_ID for t in topics)

    async def test_sends_segment_ids_and_text(self, tracker, segments) -> None:
        llm = FakeLLMProvider()

        await TopicExtractor(llm, tracker, "gpt-4.1-nano").extract(segments, VIDEO_ID)

        assert len(llm.messages) == 1
        system, user = llm.messages[0]
        assert system["role"] == "system"
        assert "seg_0001" in user["content"]
        assert "Gradient words." in user["content"]

    async def test_segment_may_belong_to_several_topics(self, tracker, segments) -> None:
        content = json.dumps([
            {"label": "A", "segmentIds": ["seg_0001", "seg_0002"]},
            {"label": "B", "segmentIds": ["seg_0002"]},
        ])

        topics = await TopicExtractor(FakeLLMProvider(content), tracker, "gpt-4.1-nano").extract(segments, VIDEO_ID)

        assert topics[0].segment_ids == ["seg_0001", "seg_0002"]
        assert topics[1].segment_ids == ["seg_0002"]

    async def test_estimates_usage_with_prompt_allowance(self, tracker, segments) -> None:
        await TopicExtractor(FakeLLMProvider(), tracker, "gpt-4.1-nano").extract(segments, VIDEO_ID)

        usage = tracker.get("gpt-4.1-nano")
        assert usage["input_tokens"] > TOPIC_SYSTEM_PROMPT_TOKENS
        assert usage["output_tokens"] > 0

    async def test_prefers_reported_usage(self, tracker, segments) -> None:
        llm = FakeLLMProvider(usage={"prompt_tokens": 321, "completion_tokens": 54})

        await TopicExtractor(llm, tracker, "gpt-4.1-nano").extract(segments, VIDEO_ID)

        assert tracker.get("gpt-4.1-nano") == {"input_tokens": 321, "output_tokens": 54}

    async def test_malformed_response_propagates(self, tracker, segments) -> None:
        with pytest.raises(MalformedResponseException):
            await TopicExtractor(FakeLLMProvider("not json"), tracker, "gpt-4.1-nano").extract(segments, VIDEO_ID)

    async def test_no_segments_skips_call(self, tracker) -> None:
        llm = FakeLLMProvider()

        assert await TopicExtractor(llm, tracker, "gpt-4.1-nano").extract([], VIDEO_ID) == []
        assert llm.messages == []


class TestSummariseSegment:
    """Tests for the single-segment summary helper."""

    async def test_returns_content_and_records_usage(self, tracker) -> None:
        llm = FakeLLMProvider("A short summary.")

        summary = await summarise_segment(llm, "A long transcript passage.", tracker, "gpt-4o-mini")

        assert summary == "A short summary."
        assert tracker.get("gpt-4o-mini")["output_tokens"] > 0

    async def test_empty_text_rejected(self) -> None:
        with pytest.raises(ValidationException):
            await summarise_segment(FakeLLMProvider(), "   ")
