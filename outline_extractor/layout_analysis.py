"""Document layout analysis using a YOLO layout model with a fixed fallback."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .layout_infer import preprocess_image, run_inference
from .layout_model import (
    LayoutModelConfig,
    ModelBundle,
    get_model,
    resolve_model_path,
)
from .layout_post import decode_predictions, fallback_layout, non_max_suppression
from .layout_types import Detection, LayoutAnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIRS: tuple = (
    "models/yolo_layout",
    "models/PP-DocLayout-L",
    "models/PP-DocLayout-S",
)


class LayoutDetector:
    """Turns page images into labeled layout detections.

    The detector never raises from ``initialize`` or ``detect_layout``: when
    no model can be loaded, or inference fails, it returns the fallback
    layout instead. One instance is meant to be shared by every page of a
    document (and across documents); inference calls are serialized.
    """

    def __init__(
        self,
        model_dirs: Sequence[Union[str, Path]] = DEFAULT_MODEL_DIRS,
        config: Optional[LayoutModelConfig] = None,
    ) -> None:
        self.model_dirs = [str(d) for d in model_dirs]
        self.config = config or LayoutModelConfig()
        self._bundle: Optional[ModelBundle] = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def has_model(self) -> bool:
        return self._bundle is not None

    @property
    def model_info(self) -> Dict[str, object]:
        info: Dict[str, object] = {
            "confidence_threshold": self.config.confidence_threshold,
            "nms_threshold": self.config.nms_threshold,
            "class_names": list(self.config.class_names),
        }
        if self._bundle is not None:
            info.update(
                {
                    "backend": self._bundle.backend,
                    "model_path": self._bundle.model_path,
                    "input_names": list(self._bundle.input_names),
                    "output_names": list(self._bundle.output_names),
                    "input_shape": list(self._bundle.input_shape),
                    "output_shape": list(self._bundle.output_shape),
                }
            )
        return info

    def initialize(self, model_location: Optional[Union[str, Path]] = None) -> bool:
        """Locate and load a layout model; always leaves the detector usable."""
        locations = [str(model_location)] if model_location else self.model_dirs
        self._initialized = True

        for location in locations:
            try:
                model_path = resolve_model_path(location)
            except Exception as exc:
                logger.warning("Cannot resolve layout model at %s: %s", location, exc)
                continue
            if model_path is None:
                logger.debug("No layout model files found in %s", location)
                continue

            try:
                self._bundle = get_model(model_path, config=self.config)
            except Exception:
                logger.exception("Failed to load layout model %s", model_path)
                continue

            self.config = self._bundle.config
            self._record_output_shape()
            logger.info(
                "Layout model %s loaded (%s backend, input shape %s, output shape %s)",
                model_path,
                self._bundle.backend,
                self._bundle.input_shape,
                self._bundle.output_shape,
            )
            return True

        logger.warning(
            "No layout model available in %s; using fallback detection",
            ", ".join(locations),
        )
        return True

    def _record_output_shape(self) -> None:
        """Run one blank forward pass so the output shape is known after loading."""
        assert self._bundle is not None
        if self._bundle.output_shape or not self._bundle.input_shape:
            return
        blank = np.zeros(self._bundle.input_shape, dtype=np.float32)
        try:
            run_inference(self._bundle, blank)
        except Exception as exc:
            logger.warning("Could not determine layout model output shape: %s", exc)

    def analyze_layout(self, image: np.ndarray) -> LayoutAnalysisResult:
        """Detect layout regions, reporting fallback use and recovered errors."""
        if not self._initialized:
            self.initialize()

        height, width = image.shape[:2]
        if self._bundle is None:
            return LayoutAnalysisResult(
                image_width=width,
                image_height=height,
                detections=fallback_layout(width, height),
                used_fallback=True,
                model_info=self.model_info,
            )

        try:
            detections = self._detect_with_model(image)
        except Exception as exc:
            logger.warning("Layout inference failed, using fallback detection: %s", exc)
            return LayoutAnalysisResult(
                image_width=width,
                image_height=height,
                detections=fallback_layout(width, height),
                used_fallback=True,
                model_info=self.model_info,
                errors=[f"inference_error: {exc}"],
            )

        logger.debug("Layout model detected %d regions", len(detections))
        return LayoutAnalysisResult(
            image_width=width,
            image_height=height,
            detections=detections,
            model_info=self.model_info,
        )

    def detect_layout(self, image: np.ndarray) -> List[Detection]:
        return self.analyze_layout(image).detections

    def _detect_with_model(self, image: np.ndarray) -> List[Detection]:
        assert self._bundle is not None
        height, width = image.shape[:2]
        size = self.config.input_size

        blob = preprocess_image(image, size)
        output = run_inference(self._bundle, blob)
        candidates = decode_predictions(
            output,
            scale_x=width / size,
            scale_y=height / size,
            conf_threshold=self.config.confidence_threshold,
            class_names=self.config.class_names,
        )
        return non_max_suppression(candidates, self.config.nms_threshold)
