import hashlib
import math
import time
import uuid


def compute_md5(data: bytes) -> str:
    """Hex MD5 digest of the source video bytes."""
    return hashlib.md5(data).hexdigest()


def generate_video_id() -> str:
    """``vid_<epoch seconds>_<8 hex chars>``, unique per run."""
    return f"vid_{int(time.time())}_{uuid.uuid4().hex[:8]}"


def _format_ordinal(prefix: str, index: int) -> str:
    return f"{prefix}_{index + 1:04d}"


def format_segment_id(index: int) -> str:
    """Zero-based position -> ``seg_0001``."""
    return _format_ordinal("seg", index)


def format_topic_id(index: int) -> str:
    return _format_ordinal("topic", index)


def format_frame_id(index: int) -> str:
    return _format_ordinal("frame", index)


def format_face_id(index: int) -> str:
    return _format_ordinal("face", index)


def log_prob_to_confidence(avg_log_probability: float) -> float:
    """
    Convert an average log probability into a 0-1 confidence rounded to 2dp.

    ``0`` maps to ``1.0`` and ``-inf`` to ``0.0``.
    """
    if math.isnan(avg_log_probability):
        return 0.0
    confidence = math.exp(min(avg_log_probability, 0.0))
    return round(confidence, 2)


def round2(value: float) -> float:
    return round(float(value), 2)
