"""Pure geometry helpers for face detection: pixel conversion, padding, IoU, dedup."""

from typing import List, Optional, Sequence, Tuple

from rcsq.providers.provider_models import RawFaceDetection
from rcsq.video_pipeline.core.models import BoundingBox, DetectedFace, ProcessedFace

DEFAULT_CONFIDENCE_THRESHOLD = 80.0
DEFAULT_IOU_THRESHOLD = 0.5
DEFAULT_DEDUP_WINDOW_SEC = 10.0
DEFAULT_CROP_PADDING = 0.2


def to_pixel_box(detection: RawFaceDetection, image_width: int, image_height: int) -> BoundingBox:
    return BoundingBox(
        x=round(detection.left * image_width),
        y=round(detection.top * image_height),
        width=round(detection.width * image_width),
        height=round(detection.height * image_height),
    )


def filter_detections(
    detections: Sequence[RawFaceDetection],
    image_width: int,
    image_height: int,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> List[DetectedFace]:
    """Keep detections at or above the threshold, converted to pixel boxes."""
    return [
        DetectedFace(
            bounding_box=to_pixel_box(detection, image_width, image_height),
            confidence=detection.confidence,
        )
        for detection in detections
        if detection.confidence >= confidence_threshold
    ]


def padded_crop_region(
    box: BoundingBox,
    image_width: int,
    image_height: int,
    padding: float = DEFAULT_CROP_PADDING,
) -> Optional[Tuple[int, int, int, int]]:
    """
    ``(left, top, right, bottom)`` of the box grown by ``padding`` on each side,
    clamped to the image. None when the clamped region is empty.
    """
    pad_x = round(box.width * padding)
    pad_y = round(box.height * padding)

    left = max(0, box.x - pad_x)
    top = max(0, box.y - pad_y)
    right = min(image_width, box.x + box.width + pad_x)
    bottom = min(image_height, box.y + box.height + pad_y)

    if right - left <= 0 or bottom - top <= 0:
        return None
    return left, top, right, bottom


def calculate_iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection over union of two pixel boxes; 0 for disjoint or empty boxes."""
    inter_left = max(a.x, b.x)
    inter_top = max(a.y, b.y)
    inter_right = min(a.x + a.width, b.x + b.width)
    inter_bottom = min(a.y + a.height, b.y + b.height)

    if inter_right <= inter_left or inter_bottom <= inter_top:
        return 0.0

    intersection = (inter_right - inter_left) * (inter_bottom - inter_top)
    union = a.area + b.area - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def deduplicate_faces(
    faces: Sequence[ProcessedFace],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
    window_sec: float = DEFAULT_DEDUP_WINDOW_SEC,
) -> List[ProcessedFace]:
    """
    Drop faces that repeat an already kept face.

    Faces are visited in timestamp order (stable for equal timestamps). A face
    is a duplicate when a kept face within ``window_sec`` overlaps it with
    IoU >= ``iou_threshold``.
    """
    kept: List[ProcessedFace] = []
    for face in sorted(faces, key=lambda f: f.timestamp_sec):
        duplicate = any(
            abs(face.timestamp_sec - other.timestamp_sec) <= window_sec
            and calculate_iou(face.bounding_box, other.bounding_box) >= iou_threshold
            for other in kept
        )
        if not duplicate:
            kept.append(face)
    return kept
