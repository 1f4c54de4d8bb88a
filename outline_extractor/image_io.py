"""Image decoding and conversion helpers for page images."""

from __future__ import annotations

import cv2
import numpy as np
from PIL import Image

from .layout_types import BBox


def decode_bgr_image(image_bytes: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) into a BGR array."""
    data = np.frombuffer(image_bytes, dtype=np.uint8)
    img = cv2.imdecode(data, cv2.IMREAD_COLOR) if data.size else None
    if img is None:
        raise ValueError("Invalid image bytes")
    return img


def bgr_to_pil(image: np.ndarray) -> Image.Image:
    """Convert a BGR (or grayscale) array into an RGB PIL Image."""
    if image.ndim == 2:
        return Image.fromarray(image).convert("RGB")
    return Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))


def crop_region(image: np.ndarray, bbox_xyxy: BBox) -> np.ndarray:
    x1, y1, x2, y2 = bbox_xyxy
    return image[y1:y2, x1:x2]
