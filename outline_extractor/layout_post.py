"""Post-processing utilities for layout detection."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .layout_types import BBox, Detection

# DocLayNet class order used by the layout models.
DOCLAYNET_CLASSES: Tuple[str, ...] = (
    "caption",
    "footnote",
    "formula",
    "list",
    "footer",
    "header",
    "figure",
    "paragraph_title",
    "table",
    "text",
    "title",
)

_DEFAULT_LABEL = "text"
_BOX_ATTRIBUTES = 4


class MalformedModelOutputError(ValueError):
    """Raised when a model output tensor does not have the expected layout."""


def calibrate_confidence(raw: np.ndarray) -> np.ndarray:
    """Apply a sigmoid only to scores above 1.0; scores already in [0, 1] pass through."""
    raw = np.asarray(raw, dtype=np.float32)
    with np.errstate(over="ignore"):
        squashed = 1.0 / (1.0 + np.exp(-raw))
    return np.where(raw > 1.0, squashed, raw)


def label_for_class(class_id: int, class_names: Sequence[str] = DOCLAYNET_CLASSES) -> str:
    if 0 <= class_id < len(class_names):
        return class_names[class_id]
    return _DEFAULT_LABEL


def decode_predictions(
    output: np.ndarray,
    *,
    scale_x: float,
    scale_y: float,
    conf_threshold: float,
    class_names: Sequence[str] = DOCLAYNET_CLASSES,
) -> List[Detection]:
    """Decode a ``[batch, 4 + classes, detections]`` tensor into detections.

    Boxes come out in corner format, rescaled to the original image with
    independent x/y factors. Only the first batch entry is decoded.
    """
    preds = np.asarray(output, dtype=np.float32)
    if preds.ndim != 3:
        raise MalformedModelOutputError(
            f"Expected a 3-D output tensor, got shape {preds.shape}"
        )
    if preds.shape[0] < 1 or preds.shape[1] <= _BOX_ATTRIBUTES:
        raise MalformedModelOutputError(
            f"Output tensor has no class scores: shape {preds.shape}"
        )

    preds = preds[0]
    cx, cy, w, h = preds[:_BOX_ATTRIBUTES]
    scores = calibrate_confidence(preds[_BOX_ATTRIBUTES:])

    best_class = np.argmax(scores, axis=0)
    best_conf = scores[best_class, np.arange(scores.shape[1])]
    # No positive score means no class wins.
    best_class = np.where(best_conf > 0.0, best_class, -1)
    best_conf = np.maximum(best_conf, 0.0)

    keep = best_conf >= conf_threshold
    half_w = np.maximum(w, 0.0) / 2.0
    half_h = np.maximum(h, 0.0) / 2.0
    x1 = (cx - half_w) * scale_x
    y1 = (cy - half_h) * scale_y
    x2 = (cx + half_w) * scale_x
    y2 = (cy + half_h) * scale_y

    detections: List[Detection] = []
    for idx in np.flatnonzero(keep):
        class_id = int(best_class[idx])
        detections.append(
            Detection(
                x1=float(x1[idx]),
                y1=float(y1[idx]),
                x2=float(x2[idx]),
                y2=float(y2[idx]),
                confidence=float(best_conf[idx]),
                class_id=class_id,
                label=label_for_class(class_id, class_names),
            )
        )
    return detections


def box_iou(
    a: Tuple[float, float, float, float], b: Tuple[float, float, float, float]
) -> float:
    """Intersection-over-union of two corner-format rectangles."""
    ax1, ay1, ax2, ay2 = a
    bx1, by1, bx2, by2 = b
    inter_w = max(0.0, min(ax2, bx2) - max(ax1, bx1))
    inter_h = max(0.0, min(ay2, by2) - max(ay1, by1))
    intersection = inter_w * inter_h
    area_a = max(0.0, ax2 - ax1) * max(0.0, ay2 - ay1)
    area_b = max(0.0, bx2 - bx1) * max(0.0, by2 - by1)
    union = area_a + area_b - intersection
    if union <= 0.0:
        return 0.0
    return intersection / union


def non_max_suppression(
    detections: Sequence[Detection], iou_threshold: float = 0.45
) -> List[Detection]:
    """Greedy NMS by descending confidence.

    Returns the surviving detections, highest confidence first.
    """
    if not detections:
        return []

    rects = np.array([det.bbox_xyxy for det in detections], dtype=float)
    confs = np.array([det.confidence for det in detections], dtype=float)
    x1 = rects[:, 0]
    y1 = rects[:, 1]
    x2 = rects[:, 2]
    y2 = rects[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)
    order = np.argsort(-confs, kind="stable")

    keep: List[Detection] = []
    while len(order) > 0:
        i = int(order[0])
        keep.append(detections[i])

        rest = order[1:]
        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        inter_w = np.maximum(0.0, xx2 - xx1)
        inter_h = np.maximum(0.0, yy2 - yy1)
        intersection = inter_w * inter_h
        union = areas[i] + areas[rest] - intersection

        iou = np.divide(
            intersection, union, out=np.zeros_like(intersection), where=union > 0.0
        )
        order = rest[iou <= iou_threshold]

    return keep


def clamp_bbox(
    x1: float, y1: float, x2: float, y2: float, width: int, height: int
) -> Optional[BBox]:
    """Clamp a bbox to image bounds; return None if invalid after clamping."""
    ix1 = max(0, min(int(round(x1)), width))
    iy1 = max(0, min(int(round(y1)), height))
    ix2 = max(0, min(int(round(x2)), width))
    iy2 = max(0, min(int(round(y2)), height))

    if ix2 <= ix1 or iy2 <= iy1:
        return None
    return (ix1, iy1, ix2, iy2)


def _rect_area(rect: BBox) -> int:
    x1, y1, x2, y2 = rect
    return max(0, x2 - x1) * max(0, y2 - y1)


def overlap_ratio(region: BBox, other: BBox) -> float:
    """Intersection area divided by the area of ``region``."""
    area = _rect_area(region)
    if area <= 0:
        return 0.0
    rx1, ry1, rx2, ry2 = region
    ox1, oy1, ox2, oy2 = other
    inter = _rect_area((max(rx1, ox1), max(ry1, oy1), min(rx2, ox2), min(ry2, oy2)))
    return inter / area


def overlaps_any(region: BBox, rects: Iterable[BBox], threshold: float = 0.3) -> bool:
    return any(overlap_ratio(region, rect) > threshold for rect in rects)


def fallback_layout(width: int, height: int) -> List[Detection]:
    """Fixed proportional regions used when no model output is available."""
    title_id = DOCLAYNET_CLASSES.index("title")
    section_id = DOCLAYNET_CLASSES.index("paragraph_title")

    results = [
        Detection(
            x1=0.1 * width,
            y1=0.05 * height,
            x2=0.9 * width,
            y2=0.15 * height,
            confidence=0.95,
            class_id=title_id,
            label="title",
        )
    ]
    for band in range(1, 4):
        y_start = 0.15 + band * 0.2
        if y_start >= 0.8:
            break
        results.append(
            Detection(
                x1=0.1 * width,
                y1=y_start * height,
                x2=0.7 * width,
                y2=(y_start + 0.05) * height,
                confidence=0.85,
                class_id=section_id,
                label="paragraph_title",
            )
        )
    return results
