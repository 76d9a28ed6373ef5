from io import BytesIO
from typing import Tuple

from PIL import Image

from rcsq.exceptions import ValidationException
from rcsq.video_pipeline.core.models import BoundingBox
from .face_geometry import DEFAULT_CROP_PADDING, padded_crop_region

DEFAULT_MAX_EMBEDDING_HEIGHT = 448
CROP_JPEG_QUALITY = 90
EMBEDDING_JPEG_QUALITY = 85


def image_dimensions(image_bytes: bytes) -> Tuple[int, int]:
    with Image.open(BytesIO(image_bytes)) as img:
        return img.size


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buffer = BytesIO()
    if img.mode != "RGB":
        img = img.convert("RGB")
    img.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def crop_face(
    image_bytes: bytes,
    box: BoundingBox,
    padding: float = DEFAULT_CROP_PADDING,
    max_embedding_height: int = DEFAULT_MAX_EMBEDDING_HEIGHT,
) -> Tuple[bytes, bytes]:
    """
    Crop a padded face region.

    Returns ``(full_resolution_jpeg, embedding_jpeg)``. The embedding copy is
    downscaled to ``max_embedding_height`` only when the crop is taller;
    otherwise it is the full-resolution crop.
    """
    with Image.open(BytesIO(image_bytes)) as img:
        width, height = img.size
        region = padded_crop_region(box, width, height, padding)
        if region is None:
            raise ValidationException("Invalid crop dimensions", details={"box": box.__dict__})

        cropped = img.crop(region)
        original = _encode_jpeg(cropped, CROP_JPEG_QUALITY)

        crop_width, crop_height = cropped.size
        if crop_height <= max_embedding_height:
            return original, original

        scaled_width = max(1, round(crop_width * max_embedding_height / crop_height))
        resized = cropped.resize((scaled_width, max_embedding_height), Image.Resampling.LANCZOS)
        return original, _encode_jpeg(resized, EMBEDDING_JPEG_QUALITY)
