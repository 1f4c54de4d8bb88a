"""Runtime settings resolved from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .layout_analysis import DEFAULT_MODEL_DIRS

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer for %s: %r; using %d", name, value, default)
        return default


@dataclass
class Settings:
    model_dirs: Tuple[str, ...] = DEFAULT_MODEL_DIRS
    model_repo: Optional[str] = None
    model_filename: str = "yolo_layout.onnx"
    dpi: int = 100
    input_dir: Path = Path("input")
    output_dir: Path = Path("output")
    default_output: Path = field(default_factory=lambda: Path("output") / "heading_schema.json")
    detect_tables: bool = True
    aggressive_correction: bool = False
    corrections_file: Optional[Path] = None
    tesseract_cmd: Optional[str] = None
    ocr_psm: int = 6

    def __post_init__(self) -> None:
        if self.dpi <= 0:
            raise ValueError("dpi must be a positive integer")

    @property
    def model_locations(self) -> Tuple[str, ...]:
        """Model search path, with the Hub reference (if configured) last."""
        if self.model_repo:
            return self.model_dirs + (f"hf://{self.model_repo}/{self.model_filename}",)
        return self.model_dirs

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        model_dirs = tuple(
            d for d in env.get("OUTLINE_MODEL_DIRS", "").split(os.pathsep) if d.strip()
        )
        corrections = env.get("OUTLINE_CORRECTIONS_FILE")
        output_dir = Path(env.get("OUTLINE_OUTPUT_DIR", "output"))
        return cls(
            model_dirs=model_dirs or DEFAULT_MODEL_DIRS,
            model_repo=env.get("OUTLINE_MODEL_REPO") or None,
            model_filename=env.get("OUTLINE_MODEL_FILENAME", "yolo_layout.onnx"),
            dpi=_env_int(env, "OUTLINE_DPI", 100),
            input_dir=Path(env.get("OUTLINE_INPUT_DIR", "input")),
            output_dir=output_dir,
            default_output=output_dir / "heading_schema.json",
            detect_tables=_env_flag(env, "OUTLINE_DETECT_TABLES", True),
            aggressive_correction=_env_flag(env, "OUTLINE_AGGRESSIVE_CORRECTION", False),
            corrections_file=Path(corrections) if corrections else None,
            tesseract_cmd=env.get("TESSERACT_CMD") or None,
            ocr_psm=_env_int(env, "OUTLINE_OCR_PSM", 6),
        )
