"""Inference helpers for document layout detection."""

from __future__ import annotations

import cv2
import numpy as np

from .layout_model import ModelBundle


def preprocess_image(image: np.ndarray, input_size: int) -> np.ndarray:
    """Resize a BGR page image to the model's square input as an RGB NCHW blob in [0, 1]."""
    if image is None or image.size == 0:
        raise ValueError("Cannot preprocess an empty image")
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return cv2.dnn.blobFromImage(
        image,
        scalefactor=1.0 / 255.0,
        size=(input_size, input_size),
        mean=(0, 0, 0),
        swapRB=True,
        crop=False,
    ).astype(np.float32)


def _run_onnx(bundle: ModelBundle, blob: np.ndarray) -> np.ndarray:
    net = bundle.session
    net.setInput(blob)
    outputs = net.forward(bundle.output_names)
    return np.asarray(outputs[0])


def _run_torch(bundle: ModelBundle, blob: np.ndarray) -> np.ndarray:
    import torch

    network = bundle.session
    device = next(network.parameters()).device
    tensor = torch.from_numpy(blob).to(device)
    with torch.no_grad():
        outputs = network(tensor)
    if isinstance(outputs, (list, tuple)):
        outputs = outputs[0]
    return outputs.detach().cpu().numpy()


def run_inference(bundle: ModelBundle, blob: np.ndarray) -> np.ndarray:
    """Run one forward pass and return the raw ``[batch, attributes, detections]`` output."""
    with bundle.lock:
        if bundle.backend == "onnx":
            output = _run_onnx(bundle, blob)
        elif bundle.backend == "torch":
            output = _run_torch(bundle, blob)
        else:
            raise ValueError(f"Unsupported backend: {bundle.backend}")
        bundle.output_shape = tuple(int(dim) for dim in output.shape)
    return output
