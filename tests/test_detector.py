"""
Detector output decoding tests (no model required).
"""

import numpy as np
import pytest

from garbage.models.detector import (
    COCO_LABELS,
    Detection,
    ObjectDetector,
    ScoredLabel,
    decode_detections,
    load_labels,
    split_detection_outputs,
)


def coco_index(label):
    return COCO_LABELS.index(label)


@pytest.fixture
def raw_outputs():
    boxes = np.array([[
        [0.1, 0.2, 0.5, 0.6],
        [0.0, 0.0, 1.0, 1.0],
        [0.2, 0.2, 0.3, 0.3],
    ]], dtype=np.float32)
    classes = np.array([[coco_index("bottle"), coco_index("banana"), 11]], dtype=np.float32)
    scores = np.array([[0.87, 0.42, 0.1]], dtype=np.float32)
    count = np.array([3], dtype=np.float32)
    return boxes, classes, scores, count


class TestLabels:

    def test_coco_label_map(self):
        assert len(COCO_LABELS) == 90
        assert COCO_LABELS[0] == "person"
        assert COCO_LABELS[43] == "bottle"
        assert COCO_LABELS[89] == "toothbrush"

    def test_default_labels(self):
        assert load_labels(None) == COCO_LABELS

    def test_label_file(self, tmp_path):
        path = tmp_path / "labels.txt"
        path.write_text("bottle\n\nbanana\n", encoding="utf-8")
        assert load_labels(str(path)) == ["bottle", "banana"]


class TestSplitOutputs:

    def test_standard_order(self, raw_outputs):
        boxes, classes, scores, count = split_detection_outputs(list(raw_outputs))
        assert boxes.shape == (3, 4)
        assert count == 3
        assert classes[0] == coco_index("bottle")
        assert scores[0] == pytest.approx(0.87)

    def test_shuffled_order(self, raw_outputs):
        boxes, classes, scores, count = raw_outputs
        _, found_classes, found_scores, _ = split_detection_outputs([scores, boxes, count, classes])
        assert list(found_classes) == list(classes[0])
        assert list(found_scores) == pytest.approx(list(scores[0]))

    def test_unexpected_outputs(self):
        with pytest.raises(ValueError):
            split_detection_outputs([np.zeros((1, 5))])


class TestDecode:

    def test_pixel_boxes_and_labels(self, raw_outputs):
        boxes, classes, scores, count = split_detection_outputs(list(raw_outputs))
        detections = decode_detections(boxes, classes, scores, count, COCO_LABELS, (640, 480))

        # the '???' class is skipped
        assert [d.top.label for d in detections] == ["bottle", "banana"]
        assert detections[0].bbox == pytest.approx([128.0, 48.0, 384.0, 240.0])
        assert detections[1].bbox == pytest.approx([0.0, 0.0, 640.0, 480.0])

    def test_score_threshold(self, raw_outputs):
        boxes, classes, scores, count = split_detection_outputs(list(raw_outputs))
        detections = decode_detections(boxes, classes, scores, count, COCO_LABELS,
                                       (640, 480), score_threshold=0.5)
        assert [d.top.label for d in detections] == ["bottle"]

    def test_count_limits_rows(self, raw_outputs):
        boxes, classes, scores, _ = split_detection_outputs(list(raw_outputs))
        detections = decode_detections(boxes, classes, scores, 1, COCO_LABELS, (640, 480))
        assert len(detections) == 1

    def test_out_of_range_class(self):
        detections = decode_detections(np.array([[0, 0, 1, 1]]), np.array([500]),
                                       np.array([0.9]), 1, COCO_LABELS, (10, 10))
        assert detections[0].top.label == "unknown_500"


class TestObjectDetector:

    def test_missing_model_falls_back(self, tmp_path):
        detector = ObjectDetector(model_path=str(tmp_path / "missing.tflite"))
        assert not detector.is_loaded
        assert detector.detect(np.zeros((10, 10, 3), dtype=np.uint8)) == []

    def test_unknown_backend_falls_back(self):
        detector = ObjectDetector(backend="onnx")
        assert detector.backend is None
        assert not detector.is_loaded

    def test_results_ranked_and_limited(self, tmp_path, monkeypatch):
        detector = ObjectDetector(model_path=str(tmp_path / "missing.tflite"), max_results=2)
        detector.backend = "tflite"
        monkeypatch.setattr(detector, "_detect_with_tflite", lambda image: [
            Detection([0, 0, 1, 1], [ScoredLabel("cup", 0.4)]),
            Detection([0, 0, 1, 1], []),
            Detection([0, 0, 1, 1], [ScoredLabel("apple", 0.8)]),
        ])
        detections = detector.detect(np.zeros((10, 10, 3), dtype=np.uint8))
        assert [d.top.label for d in detections] == ["apple", "cup"]

