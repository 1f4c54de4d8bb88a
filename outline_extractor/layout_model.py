"""Model resolution and caching for YOLO document layout detection."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import cv2
from huggingface_hub import hf_hub_download

from .layout_post import DOCLAYNET_CLASSES

logger = logging.getLogger(__name__)

_MODEL_FILENAMES: Tuple[str, ...] = (
    "yolo_layout.onnx",
    "yolov12.onnx",
    "yolo_layout.pt",
)

_BACKENDS: Dict[str, str] = {
    ".onnx": "onnx",
    ".pt": "torch",
}

_HUB_PREFIX = "hf://"

_MODEL_CACHE: Dict[Tuple[str, "LayoutModelConfig"], "ModelBundle"] = {}
_MODEL_LOCK = threading.Lock()


class UnknownVariantError(ValueError):
    """Raised when a model location cannot be mapped to a supported backend."""


@dataclass(frozen=True)
class LayoutModelConfig:
    confidence_threshold: float = 0.5
    nms_threshold: float = 0.45
    class_names: Tuple[str, ...] = DOCLAYNET_CLASSES
    input_size: int = 1024


@dataclass
class ModelBundle:
    """Grouped model assets for inference."""

    backend: str
    session: Any
    model_path: str
    config: LayoutModelConfig
    input_names: List[str] = field(default_factory=list)
    output_names: List[str] = field(default_factory=list)
    input_shape: Tuple[int, ...] = ()
    output_shape: Tuple[int, ...] = ()
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def load_model_config(
    config_path: Union[str, Path], base: Optional[LayoutModelConfig] = None
) -> LayoutModelConfig:
    """Overlay values from a model ``config.json`` onto ``base``.

    A missing or unreadable file leaves the defaults in place.
    """
    config = base or LayoutModelConfig()
    path = Path(config_path)
    if not path.is_file():
        return config

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not parse model config %s: %s", path, exc)
        return config
    if not isinstance(data, dict):
        logger.warning("Model config %s is not a JSON object; ignoring", path)
        return config

    updates: Dict[str, Any] = {}
    if "confidence_threshold" in data:
        updates["confidence_threshold"] = float(data["confidence_threshold"])
    if "nms_threshold" in data:
        updates["nms_threshold"] = float(data["nms_threshold"])
    if isinstance(data.get("class_names"), list) and data["class_names"]:
        updates["class_names"] = tuple(str(name) for name in data["class_names"])
    if "input_size" in data:
        updates["input_size"] = int(data["input_size"])

    config = replace(config, **updates)
    logger.info(
        "Model config loaded: conf=%.2f nms=%.2f classes=%d",
        config.confidence_threshold,
        config.nms_threshold,
        len(config.class_names),
    )
    return config


def find_model_file(model_dir: Union[str, Path]) -> Optional[Path]:
    """Return the first known model file inside ``model_dir``, if any."""
    directory = Path(model_dir)
    for name in _MODEL_FILENAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _download_from_hub(reference: str) -> Path:
    repo_and_file = reference[len(_HUB_PREFIX):]
    repo_id, _, filename = repo_and_file.rpartition("/")
    if not repo_id or not filename:
        raise UnknownVariantError(
            f"Hub reference must look like hf://<owner>/<repo>/<file>, got {reference!r}"
        )
    return Path(hf_hub_download(repo_id=repo_id, filename=filename))


def resolve_model_path(model_location: Union[str, Path]) -> Optional[Path]:
    """Resolve a directory, model file or ``hf://`` reference to a local file.

    Returns None when a directory holds no known model file.
    """
    location = str(model_location)
    if location.startswith(_HUB_PREFIX):
        path = _download_from_hub(location)
    else:
        path = Path(location)
        if path.is_dir():
            return find_model_file(path)
        if not path.is_file():
            return None

    if path.suffix.lower() not in _BACKENDS:
        raise UnknownVariantError(
            f"Unsupported model file '{path.name}'. "
            f"Choose from: {', '.join(sorted(_BACKENDS))}."
        )
    return path


def _load_onnx(path: Path, config: LayoutModelConfig) -> ModelBundle:
    net = cv2.dnn.readNetFromONNX(str(path))
    size = config.input_size
    return ModelBundle(
        backend="onnx",
        session=net,
        model_path=str(path),
        config=config,
        input_names=["images"],
        output_names=list(net.getUnconnectedOutLayersNames()),
        input_shape=(1, 3, size, size),
    )


def _load_torch(path: Path, config: LayoutModelConfig) -> ModelBundle:
    import torch
    from ultralytics import YOLO

    device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
    network = YOLO(str(path)).model
    network.to(device)
    network.eval()
    size = config.input_size
    return ModelBundle(
        backend="torch",
        session=network,
        model_path=str(path),
        config=config,
        input_names=["images"],
        output_names=["output0"],
        input_shape=(1, 3, size, size),
    )


def load_layout_model(
    model_path: Union[str, Path], config: Optional[LayoutModelConfig] = None
) -> ModelBundle:
    """Load a layout model file; ``config.json`` beside it overrides defaults."""
    path = Path(model_path)
    backend = _BACKENDS.get(path.suffix.lower())
    if backend is None:
        raise UnknownVariantError(f"Unsupported model file '{path.name}'")

    config = load_model_config(path.parent / "config.json", base=config)
    if backend == "onnx":
        return _load_onnx(path, config)
    return _load_torch(path, config)


def get_model(
    model_path: Union[str, Path], config: Optional[LayoutModelConfig] = None
) -> ModelBundle:
    """Return a cached model bundle for ``model_path`` and the requested config."""
    config = config or LayoutModelConfig()
    key = (str(Path(model_path).resolve()), config)
    if key in _MODEL_CACHE:
        return _MODEL_CACHE[key]

    with _MODEL_LOCK:
        if key in _MODEL_CACHE:
            return _MODEL_CACHE[key]
        bundle = load_layout_model(model_path, config=config)
        _MODEL_CACHE[key] = bundle
        return bundle


def clear_model_cache() -> None:
    with _MODEL_LOCK:
        _MODEL_CACHE.clear()
