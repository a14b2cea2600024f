"""
Frame analysis tests with a fake detector.
"""

import numpy as np
import pytest

from garbage.analyzer import FrameAnalyzer, top_result
from garbage.models.detector import Detection, ScoredLabel
from garbage.utils.display_state import AcceptanceGate, DisplayStateCell


class FakeDetector:
    """Returns queued detection lists, one per frame."""

    def __init__(self, *frames):
        self.frames = list(frames)

    def detect(self, image):
        result = self.frames.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def make_detection(*labels_and_scores):
    return Detection(
        bbox=[0.0, 0.0, 10.0, 10.0],
        categories=[ScoredLabel(label, score) for label, score in labels_and_scores],
    )


@pytest.fixture
def frame():
    return np.zeros((48, 64, 3), dtype=np.uint8)


@pytest.fixture
def cell():
    return DisplayStateCell()


def make_analyzer(cell, *frames):
    return FrameAnalyzer(FakeDetector(*frames), AcceptanceGate(cell))


class TestTopResult:

    def test_empty(self):
        assert top_result([]) is None

    def test_detection_without_categories(self):
        assert top_result([Detection(bbox=[0, 0, 1, 1])]) is None

    def test_first_category_of_first_detection(self):
        detections = [
            make_detection(("cup", 0.6), ("bowl", 0.3)),
            make_detection(("banana", 0.9)),
        ]
        assert top_result(detections).label == "cup"


class TestFrameAnalyzer:

    def test_accepted_detection_updates_state(self, cell, frame):
        analyzer = make_analyzer(cell, [make_detection(("bottle", 0.9))])
        assert analyzer.analyze(frame) is True
        assert cell.get().as_tuple() == ("瓶子", "回收", 0.9)

    def test_no_detections_leaves_state(self, cell, frame):
        analyzer = make_analyzer(cell, [make_detection(("bottle", 0.9))], [])
        analyzer.analyze(frame)
        before = cell.get()
        assert analyzer.analyze(frame) is None
        assert cell.get() is before

    def test_empty_categories_leaves_state(self, cell, frame):
        analyzer = make_analyzer(cell, [Detection(bbox=[0, 0, 1, 1])])
        assert analyzer.analyze(frame) is None
        assert cell.version == 0

    def test_low_confidence_rejected(self, cell, frame):
        analyzer = make_analyzer(cell, [make_detection(("bottle", 0.25))])
        assert analyzer.analyze(frame) is False
        assert not cell.get().has_detection

    def test_only_first_detection_used(self, cell, frame):
        analyzer = make_analyzer(cell, [
            make_detection(("cake", 0.4)),
            make_detection(("bottle", 0.95)),
        ])
        analyzer.analyze(frame)
        assert cell.get().label == "cake"

    def test_detector_failure_is_contained(self, cell, frame):
        analyzer = make_analyzer(cell, RuntimeError("boom"), [make_detection(("apple", 0.7))])
        assert analyzer.analyze(frame) is None
        assert analyzer.frames_failed == 1
        assert cell.version == 0

        assert analyzer.analyze(frame) is True
        assert cell.get().as_tuple() == ("蘋果", "廚餘", 0.7)
        assert analyzer.frames_analyzed == 2
