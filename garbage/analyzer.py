"""
Per-frame analysis: detect, take the top result, pass it to the acceptance gate
"""

import numpy as np
from typing import List, Optional
import logging

from .models.detector import Detection, ObjectDetector, ScoredLabel
from .utils.display_state import AcceptanceGate


def top_result(detections: List[Detection]) -> Optional[ScoredLabel]:
    """First category of the first detection, or None if there is nothing to report"""
    if not detections:
        return None
    return detections[0].top


class FrameAnalyzer:
    """Runs the detector on one frame and feeds the best label to the gate"""

    def __init__(self, detector: ObjectDetector, gate: AcceptanceGate):
        self.detector = detector
        self.gate = gate
        self.frames_analyzed = 0
        self.frames_failed = 0
        self.logger = logging.getLogger(__name__)

    def analyze(self, frame: np.ndarray) -> Optional[bool]:
        """
        Analyze a frame

        Returns:
            None if the frame had no usable detection or detection failed,
            otherwise whether the gate accepted the top result
        """
        self.frames_analyzed += 1
        try:
            detections = self.detector.detect(frame)
        except Exception as e:
            self.frames_failed += 1
            self.logger.error(f"Detection failed: {e}")
            return None

        result = top_result(detections)
        if result is None:
            return None

        return self.gate.offer(result.label, result.score)
