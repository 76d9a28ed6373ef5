"""
Per-model token ledger with static cost estimation.

Token counts are heuristic estimates unless a provider reports exact usage;
treat the resulting cost as an estimate, not a billing figure.
"""

import math
import threading
from typing import Dict, Optional

from loguru import logger

from rcsq.exceptions import RCSQException
from rcsq.video_pipeline.models import ModelTokenUsage, UsageStats

# USD per 1M tokens: (input, output)
MODEL_PRICING: Dict[str, tuple] = {
    "whisper-1": (0.006, 0.0),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1-nano": (0.10, 0.40),
    "gpt-5-mini": (0.30, 1.20),
    "voyage-3-large": (0.06, 0.0),
    "voyage-multimodal-3": (0.12, 0.0),
}

TOPIC_SYSTEM_PROMPT_TOKENS = 200
CAPTION_PROMPT_TOKENS = 50
AUDIO_TOKENS_PER_SECOND = 25
MIN_IMAGE_TOKENS = 85


def estimate_text_tokens(text: str) -> int:
    """Roughly one token per four characters."""
    return math.ceil(len(text or "") / 4)


def estimate_image_tokens(base64_length: int) -> int:
    return max(MIN_IMAGE_TOKENS, math.ceil(base64_length / 1000))


def estimate_audio_tokens(duration_sec: float) -> int:
    return math.ceil(max(duration_sec, 0.0) * AUDIO_TOKENS_PER_SECOND)


def calculate_cost(model: str, input_tokens: int, output_tokens: int,
                   pricing: Dict[str, tuple] = None) -> float:
    input_price, output_price = (pricing or MODEL_PRICING).get(model, (0.0, 0.0))
    cost = input_tokens / 1_000_000 * input_price + output_tokens / 1_000_000 * output_price
    return round(cost, 6)


class UsageTracker:
    """
    Thread-safe ledger shared by every stage of a run.

    ``record`` may be called concurrently from pool workers. After
    ``finalize`` the ledger is read-only.
    """

    def __init__(self, pricing: Optional[Dict[str, tuple]] = None):
        self.pricing = pricing or MODEL_PRICING
        self._ledger: Dict[str, Dict[str, int]] = {}
        self._lock = threading.Lock()
        self._finalized = False

    def record(self, model: str, input_tokens: int = 0, output_tokens: int = 0):
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError("token counts must be non-negative")
        with self._lock:
            if self._finalized:
                raise RCSQException(
                    "Usage ledger is finalized",
                    error_code="LEDGER_FINALIZED",
                    details={"model": model},
                )
            entry = self._ledger.setdefault(model, {"input_tokens": 0, "output_tokens": 0})
            entry["input_tokens"] += int(input_tokens)
            entry["output_tokens"] += int(output_tokens)

    def get(self, model: str) -> Dict[str, int]:
        with self._lock:
            return dict(self._ledger.get(model, {"input_tokens": 0, "output_tokens": 0}))

    def finalize(self) -> UsageStats:
        with self._lock:
            self._finalized = True
        return self.snapshot()

    @property
    def finalized(self) -> bool:
        return self._finalized

    def snapshot(self) -> UsageStats:
        """Immutable summary; models with zero usage are omitted."""
        with self._lock:
            entries = [(model, dict(counts)) for model, counts in self._ledger.items()]

        models = []
        total_tokens = 0
        total_cost = 0.0
        for model, counts in entries:
            total = counts["input_tokens"] + counts["output_tokens"]
            if total <= 0:
                continue
            cost = calculate_cost(model, counts["input_tokens"], counts["output_tokens"], self.pricing)
            models.append(
                ModelTokenUsage(
                    model=model,
                    input_tokens=counts["input_tokens"],
                    output_tokens=counts["output_tokens"],
                    total_tokens=total,
                    estimated_cost_usd=cost,
                )
            )
            total_tokens += total
            total_cost += cost

        stats = UsageStats(
            models=models,
            total_tokens=total_tokens,
            total_estimated_cost_usd=round(total_cost, 6),
        )
        logger.debug(f"Usage snapshot: {total_tokens} tokens, ${stats.total_estimated_cost_usd:.6f}")
        return stats
