"""
Displayed state for the most recent accepted detection
Thread-safe snapshot cell plus the confidence gate that feeds it
"""

import time
import threading
from dataclasses import dataclass, field
from typing import Optional, Tuple
import logging

from ..models.classifier import Category, WasteClassifier

DEFAULT_ACCEPTANCE_THRESHOLD = 0.3

PLACEHOLDER_NAME = "尚未偵測"
PLACEHOLDER_CATEGORY = "未知"


@dataclass(frozen=True)
class DisplayedState:
    """Immutable snapshot of the last accepted detection"""
    display_name: str = PLACEHOLDER_NAME
    category: Optional[Category] = None
    confidence: float = 0.0
    label: Optional[str] = None
    timestamp: float = field(default=0.0, compare=False)

    @property
    def category_name(self) -> str:
        """Category display name, or the placeholder before any detection"""
        return self.category.display_name if self.category else PLACEHOLDER_CATEGORY

    @property
    def has_detection(self) -> bool:
        return self.category is not None

    def as_tuple(self) -> Tuple[str, str, float]:
        """(display name, category name, confidence) as shown to the user"""
        return (self.display_name, self.category_name, self.confidence)


class DisplayStateCell:
    """
    Holds the current DisplayedState.
    Writers publish whole snapshots under a lock so readers on another
    thread never see a half-updated state.
    """

    def __init__(self, initial: Optional[DisplayedState] = None):
        self.lock = threading.Lock()
        self._state = initial or DisplayedState()
        self._version = 0

    def get(self) -> DisplayedState:
        """Current snapshot"""
        with self.lock:
            return self._state

    def snapshot(self) -> Tuple[DisplayedState, int]:
        """Current snapshot and the version it was published as, read together"""
        with self.lock:
            return self._state, self._version

    def publish(self, state: DisplayedState):
        """Replace the current snapshot"""
        with self.lock:
            self._state = state
            self._version += 1

    @property
    def version(self) -> int:
        """Number of snapshots published since construction"""
        with self.lock:
            return self._version


class AcceptanceGate:
    """
    Confidence threshold filter in front of the DisplayStateCell.
    A detection strictly above the threshold overwrites the displayed state;
    anything else is dropped and the previous state stays.
    """

    def __init__(self, cell: DisplayStateCell, classifier: Optional[WasteClassifier] = None,
                 threshold: float = DEFAULT_ACCEPTANCE_THRESHOLD):
        """
        Initialize the gate

        Args:
            cell: State cell to publish accepted detections into
            classifier: Lookup tables, defaults to the built-in ones
            threshold: Exclusive minimum confidence for acceptance
        """
        self.cell = cell
        self.classifier = classifier or WasteClassifier()
        self.threshold = threshold

        self.accepted_count = 0
        self.rejected_count = 0

        self.setup_logging()

    def setup_logging(self):
        """Setup logging"""
        self.logger = logging.getLogger(__name__)

    def offer(self, label: str, confidence: float) -> bool:
        """
        Offer a detection to the gate

        Args:
            label: Detector label
            confidence: Detector score in [0, 1]

        Returns:
            True if the displayed state was replaced
        """
        if not confidence > self.threshold:
            self.rejected_count += 1
            self.logger.debug(f"Dropped {label} ({confidence:.2f} <= {self.threshold})")
            return False

        state = DisplayedState(
            display_name=self.classifier.translate(label),
            category=self.classifier.classify(label),
            confidence=float(confidence),
            label=label,
            timestamp=time.time(),
        )
        self.cell.publish(state)
        self.accepted_count += 1

        self.logger.info(
            f"Accepted {label} -> {state.display_name} / {state.category_name} "
            f"({confidence * 100:.1f}%)"
        )
        return True

    def get_statistics(self) -> dict:
        """Accept/reject counters"""
        return {
            "threshold": self.threshold,
            "accepted": self.accepted_count,
            "rejected": self.rejected_count,
        }
