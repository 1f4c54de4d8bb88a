import json

import numpy as np
import pytest

import outline_extractor.layout_analysis as layout_analysis
from outline_extractor.layout_analysis import LayoutDetector
from outline_extractor.layout_infer import preprocess_image, run_inference
from outline_extractor.layout_model import (
    LayoutModelConfig,
    ModelBundle,
    UnknownVariantError,
    clear_model_cache,
    find_model_file,
    get_model,
    load_model_config,
    resolve_model_path,
)
from outline_extractor.layout_post import DOCLAYNET_CLASSES


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_model_cache()
    yield
    clear_model_cache()


class _StubNet:
    def __init__(self, output):
        self.output = output
        self.inputs = []

    def setInput(self, blob):
        self.inputs.append(blob)

    def forward(self, names):
        return [self.output]


def _stub_bundle(session=None):
    return ModelBundle(
        backend="onnx",
        session=session,
        model_path="stub.onnx",
        config=LayoutModelConfig(),
        input_names=["images"],
        output_names=["output0"],
        input_shape=(1, 3, 1024, 1024),
    )


def _model_dir(tmp_path, name="yolo_layout.onnx", content=b""):
    model_dir = tmp_path / "models"
    model_dir.mkdir()
    (model_dir / name).write_bytes(content)
    return model_dir


def test_load_model_config_overlays_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"confidence_threshold": 0.3, "class_names": ["heading", "body"]}),
        encoding="utf-8",
    )
    config = load_model_config(path)
    assert config.confidence_threshold == pytest.approx(0.3)
    assert config.nms_threshold == pytest.approx(0.45)
    assert config.class_names == ("heading", "body")


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_load_model_config_keeps_defaults_on_bad_file(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    assert load_model_config(path) == LayoutModelConfig()


def test_load_model_config_missing_file(tmp_path):
    assert load_model_config(tmp_path / "config.json") == LayoutModelConfig()


def test_find_model_file_prefers_known_names_in_order(tmp_path):
    (tmp_path / "yolo_layout.pt").write_bytes(b"")
    (tmp_path / "yolov12.onnx").write_bytes(b"")
    assert find_model_file(tmp_path).name == "yolov12.onnx"
    assert find_model_file(tmp_path / "missing") is None


def test_resolve_model_path(tmp_path):
    model_dir = _model_dir(tmp_path)
    assert resolve_model_path(model_dir) == model_dir / "yolo_layout.onnx"
    assert resolve_model_path(model_dir / "yolo_layout.onnx") == model_dir / "yolo_layout.onnx"
    assert resolve_model_path(tmp_path / "nowhere") is None

    empty = tmp_path / "empty"
    empty.mkdir()
    assert resolve_model_path(empty) is None


def test_resolve_model_path_rejects_unknown_files(tmp_path):
    weights = tmp_path / "weights.bin"
    weights.write_bytes(b"")
    with pytest.raises(UnknownVariantError):
        resolve_model_path(weights)
    with pytest.raises(UnknownVariantError):
        resolve_model_path("hf://model.onnx")


def test_get_model_caches_bundles(tmp_path, monkeypatch):
    calls = []

    def fake_load(path, config=None):
        calls.append(path)
        return _stub_bundle()

    monkeypatch.setattr("outline_extractor.layout_model.load_layout_model", fake_load)
    path = tmp_path / "yolo_layout.onnx"
    first = get_model(path)
    second = get_model(path)
    assert first is second
    assert len(calls) == 1


def test_preprocess_image_produces_square_rgb_blob():
    image = np.zeros((100, 200, 3), dtype=np.uint8)
    image[:, :, 0] = 255  # blue in BGR
    blob = preprocess_image(image, 64)
    assert blob.shape == (1, 3, 64, 64)
    assert blob.dtype == np.float32
    assert blob[0, 2].max() == pytest.approx(1.0)
    assert blob[0, 0].max() == 0.0


def test_preprocess_image_accepts_grayscale_and_rejects_empty():
    assert preprocess_image(np.zeros((30, 40), dtype=np.uint8), 32).shape == (1, 3, 32, 32)
    with pytest.raises(ValueError):
        preprocess_image(np.zeros((0, 0, 3), dtype=np.uint8), 32)


def test_run_inference_records_output_shape():
    net = _StubNet(np.zeros((1, 15, 8), dtype=np.float32))
    bundle = _stub_bundle(session=net)
    output = run_inference(bundle, np.zeros((1, 3, 1024, 1024), dtype=np.float32))
    assert output.shape == (1, 15, 8)
    assert bundle.output_shape == (1, 15, 8)
    assert len(net.inputs) == 1


def test_run_inference_unknown_backend():
    bundle = _stub_bundle()
    bundle.backend = "tflite"
    with pytest.raises(ValueError):
        run_inference(bundle, np.zeros((1, 3, 8, 8), dtype=np.float32))


def test_detector_without_model_uses_fallback(tmp_path):
    detector = LayoutDetector(model_dirs=[tmp_path])
    assert detector.initialize() is True
    assert detector.is_initialized
    assert not detector.has_model

    result = detector.analyze_layout(np.zeros((1200, 1000, 3), dtype=np.uint8))
    assert result.used_fallback
    assert result.errors == []
    assert (result.image_width, result.image_height) == (1000, 1200)
    assert [d.label for d in result.detections] == ["title"] + ["paragraph_title"] * 3


def test_detector_initializes_lazily(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    detector = LayoutDetector()
    dets = detector.detect_layout(np.zeros((100, 100, 3), dtype=np.uint8))
    assert detector.is_initialized
    assert len(dets) == 4


def test_detector_survives_unloadable_model(tmp_path):
    model_dir = _model_dir(tmp_path, content=b"not a model")
    detector = LayoutDetector(model_dirs=[model_dir])
    assert detector.initialize() is True
    assert not detector.has_model


def test_detector_runs_model_and_suppresses_duplicates(tmp_path, monkeypatch):
    model_dir = _model_dir(tmp_path)
    bundle = _stub_bundle()
    monkeypatch.setattr(layout_analysis, "get_model", lambda path, config=None: bundle)

    output = np.zeros((1, 4 + len(DOCLAYNET_CLASSES), 3), dtype=np.float32)
    output[0, :4, 0] = (100, 100, 100, 40)
    output[0, 4 + 10, 0] = 0.9
    output[0, :4, 1] = (102, 100, 100, 40)
    output[0, 4 + 10, 1] = 0.8
    output[0, :4, 2] = (500, 500, 200, 50)
    output[0, 4 + 7, 2] = 0.7
    blobs = []

    def fake_inference(model_bundle, blob):
        blobs.append(blob)
        return output

    monkeypatch.setattr(layout_analysis, "run_inference", fake_inference)

    detector = LayoutDetector(model_dirs=[model_dir])
    detector.initialize()
    assert detector.has_model
    assert detector.model_info["backend"] == "onnx"

    # 2048 x 1024 page against a 1024 input: x scales by 2, y by 1.
    result = detector.analyze_layout(np.zeros((1024, 2048, 3), dtype=np.uint8))
    assert not result.used_fallback
    assert blobs[0].shape == (1, 3, 1024, 1024)
    assert [d.label for d in result.detections] == ["title", "paragraph_title"]
    assert result.detections[0].bbox_xyxy == pytest.approx((100, 80, 300, 120))
    assert result.detections[0].confidence == pytest.approx(0.9)


def test_detector_falls_back_when_inference_fails(tmp_path, monkeypatch):
    model_dir = _model_dir(tmp_path)
    monkeypatch.setattr(layout_analysis, "get_model", lambda path, config=None: _stub_bundle())

    def broken_inference(bundle, blob):
        raise RuntimeError("boom")

    monkeypatch.setattr(layout_analysis, "run_inference", broken_inference)

    detector = LayoutDetector(model_dirs=[model_dir])
    detector.initialize()
    result = detector.analyze_layout(np.zeros((1200, 1000, 3), dtype=np.uint8))
    assert result.used_fallback
    assert result.errors == ["inference_error: boom"]
    assert len(result.detections) == 4


def test_detector_explicit_location_overrides_dirs(tmp_path, monkeypatch):
    model_dir = _model_dir(tmp_path)
    loaded = []

    def fake_get_model(path, config=None):
        loaded.append(path)
        return _stub_bundle()

    monkeypatch.setattr(layout_analysis, "get_model", fake_get_model)
    detector = LayoutDetector(model_dirs=[tmp_path / "other"])
    assert detector.initialize(model_dir / "yolo_layout.onnx")
    assert loaded == [model_dir / "yolo_layout.onnx"]


def test_get_model_keeps_bundles_per_config(tmp_path, monkeypatch):
    def fake_load(path, config=None):
        bundle = _stub_bundle()
        bundle.config = config
        return bundle

    monkeypatch.setattr("outline_extractor.layout_model.load_layout_model", fake_load)
    path = tmp_path / "yolo_layout.onnx"
    loose = LayoutModelConfig(confidence_threshold=0.2)
    strict = LayoutModelConfig(confidence_threshold=0.8)

    assert get_model(path, config=loose).config.confidence_threshold == pytest.approx(0.2)
    assert get_model(path, config=strict).config.confidence_threshold == pytest.approx(0.8)
    assert get_model(path, config=LayoutModelConfig(confidence_threshold=0.2)) is get_model(
        path, config=loose
    )


def test_detectors_sharing_a_model_keep_their_thresholds(tmp_path, monkeypatch):
    model_dir = _model_dir(tmp_path)

    def fake_load(path, config=None):
        bundle = _stub_bundle()
        bundle.config = config
        return bundle

    monkeypatch.setattr("outline_extractor.layout_model.load_layout_model", fake_load)
    loose = LayoutDetector(model_dirs=[model_dir], config=LayoutModelConfig(confidence_threshold=0.2))
    strict = LayoutDetector(model_dirs=[model_dir], config=LayoutModelConfig(confidence_threshold=0.8))
    loose.initialize()
    strict.initialize()

    assert loose.config.confidence_threshold == pytest.approx(0.2)
    assert strict.config.confidence_threshold == pytest.approx(0.8)
    assert strict.model_info["confidence_threshold"] == pytest.approx(0.8)


def test_initialize_records_output_shape(tmp_path, monkeypatch):
    model_dir = _model_dir(tmp_path)
    net = _StubNet(np.zeros((1, 15, 21504), dtype=np.float32))
    bundle = _stub_bundle(session=net)
    monkeypatch.setattr(layout_analysis, "get_model", lambda path, config=None: bundle)

    detector = LayoutDetector(model_dirs=[model_dir])
    detector.initialize()

    assert detector.model_info["output_shape"] == [1, 15, 21504]
    assert net.inputs[0].shape == (1, 3, 1024, 1024)


def test_initialize_keeps_model_when_shape_check_fails(tmp_path, monkeypatch):
    model_dir = _model_dir(tmp_path)
    monkeypatch.setattr(layout_analysis, "get_model", lambda path, config=None: _stub_bundle())

    detector = LayoutDetector(model_dirs=[model_dir])
    assert detector.initialize()
    assert detector.has_model
    assert detector.model_info["output_shape"] == []
