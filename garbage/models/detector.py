"""
Object Detection for the Garbage Sorter
- TensorFlow Lite EfficientDet-Lite0 (COCO label map), the default
- Ultralytics YOLO as an alternative backend
Results are ranked by score; callers use only the top detection
"""

import cv2
import numpy as np
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import logging
from pathlib import Path
import time

try:
    from ultralytics import YOLO
    YOLO_AVAILABLE = True
except ImportError:
    YOLO_AVAILABLE = False

try:
    import tensorflow as tf
    TF_AVAILABLE = True
except ImportError:
    TF_AVAILABLE = False


DEFAULT_TFLITE_MODEL = "efficientdet_lite0.tflite"

# COCO label map as packaged with EfficientDet-Lite models (90 ids, gaps marked '???')
COCO_LABELS = [
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck",
    "boat", "traffic light", "fire hydrant", "???", "stop sign", "parking meter",
    "bench", "bird", "cat", "dog", "horse", "sheep", "cow", "elephant", "bear",
    "zebra", "giraffe", "???", "backpack", "umbrella", "???", "???", "handbag",
    "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard", "tennis racket",
    "bottle", "???", "wine glass", "cup", "fork", "knife", "spoon", "bowl",
    "banana", "apple", "sandwich", "orange", "broccoli", "carrot", "hot dog",
    "pizza", "donut", "cake", "chair", "couch", "potted plant", "bed", "???",
    "dining table", "???", "???", "toilet", "???", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "???", "book", "clock", "vase", "scissors", "teddy bear",
    "hair drier", "toothbrush",
]


@dataclass
class ScoredLabel:
    """One candidate class for a detection"""
    label: str
    score: float
    index: int = -1


@dataclass
class Detection:
    """
    Single detected object

    Attributes:
        bbox: [x1, y1, x2, y2] in pixels
        categories: Candidate classes, best first
    """
    bbox: List[float]
    categories: List[ScoredLabel] = field(default_factory=list)

    @property
    def top(self) -> Optional[ScoredLabel]:
        return self.categories[0] if self.categories else None


def load_labels(label_path: Optional[str]) -> List[str]:
    """Load a label file (one label per line), defaulting to COCO_LABELS"""
    if not label_path:
        return list(COCO_LABELS)
    with open(label_path, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip()]


class ObjectDetector:
    """
    Object detector with interchangeable backends:
    - 'tflite': EfficientDet-Lite style model via tf.lite.Interpreter
    - 'yolo': ultralytics YOLO model
    - None: no model loaded, detect() returns no detections
    """

    def __init__(self, model_path: Optional[str] = None, backend: str = 'tflite',
                 label_path: Optional[str] = None, score_threshold: float = 0.0,
                 max_results: int = 5, num_threads: int = 2):
        """
        Initialize the detector

        Args:
            model_path: Path to the model file, defaults to efficientdet_lite0.tflite
            backend: 'tflite' or 'yolo'
            label_path: Label map file for the tflite backend
            score_threshold: Detections at or below this score are discarded
            max_results: Maximum detections returned per frame
            num_threads: Interpreter threads for the tflite backend
        """
        self.score_threshold = score_threshold
        self.max_results = max_results
        self.num_threads = num_threads
        self.backend = None
        self.model = None
        self.labels: List[str] = []
        self.input_size: Tuple[int, int] = (320, 320)
        self.setup_logging()

        if backend == 'yolo':
            self.load_yolo_model(model_path)
        elif backend == 'tflite':
            self.load_tflite_model(model_path or DEFAULT_TFLITE_MODEL, label_path)
        else:
            self.logger.error(f"Unknown detector backend: {backend}")
            self.setup_fallback_detector()

    def setup_logging(self):
        """Setup logging for the detector"""
        self.logger = logging.getLogger(__name__)

    @property
    def is_loaded(self) -> bool:
        return self.model is not None

    def load_tflite_model(self, model_path: str, label_path: Optional[str] = None):
        """Load a TFLite detection model with post-processing outputs"""
        if not TF_AVAILABLE:
            self.logger.error("TensorFlow not available - cannot load TFLite model")
            self.setup_fallback_detector()
            return

        if not Path(model_path).exists():
            self.logger.error(f"TFLite model not found: {model_path}")
            self.setup_fallback_detector()
            return

        try:
            interpreter = tf.lite.Interpreter(model_path=model_path, num_threads=self.num_threads)
            interpreter.allocate_tensors()

            input_details = interpreter.get_input_details()
            _, height, width, _ = input_details[0]['shape']
            self.input_size = (int(width), int(height))
            self.input_details = input_details
            self.output_details = interpreter.get_output_details()

            self.labels = load_labels(label_path)
            self.model = interpreter
            self.backend = 'tflite'
            self.logger.info(
                f"Loaded TFLite model {model_path} "
                f"(input {self.input_size[0]}x{self.input_size[1]}, {len(self.labels)} labels)"
            )
        except Exception as e:
            self.logger.error(f"Failed to load TFLite model: {e}")
            self.setup_fallback_detector()

    def load_yolo_model(self, model_path: Optional[str] = None):
        """Load an ultralytics YOLO model, defaulting to YOLOv8-nano"""
        if not YOLO_AVAILABLE:
            self.logger.error("ultralytics not available - cannot load YOLO model")
            self.setup_fallback_detector()
            return

        try:
            if model_path and Path(model_path).exists():
                self.model = YOLO(model_path)
                self.logger.info(f"Loaded YOLO model from {model_path}")
            else:
                self.model = YOLO('yolov8n.pt')
                self.logger.info("Loaded YOLOv8-nano model (fallback)")

            self.labels = [name for _, name in sorted(self.model.names.items())]
            self.backend = 'yolo'
        except Exception as e:
            self.logger.error(f"Failed to load YOLO model: {e}")
            self.setup_fallback_detector()

    def setup_fallback_detector(self):
        """No model: detect() returns an empty list"""
        self.logger.warning("No detection model loaded - no detections will be made")
        self.model = None
        self.backend = None

    def detect(self, image: np.ndarray) -> List[Detection]:
        """
        Run detection on a BGR frame

        Args:
            image: Input image as numpy array (BGR, as read by OpenCV)

        Returns:
            Detections ranked by top score, at most max_results
        """
        if self.backend == 'tflite':
            detections = self._detect_with_tflite(image)
        elif self.backend == 'yolo':
            detections = self._detect_with_yolo(image)
        else:
            self.logger.debug("No detection model available - returning empty detections")
            return []

        detections.sort(key=lambda d: d.top.score if d.top else 0.0, reverse=True)
        return detections[:self.max_results]

    def _preprocess_for_tflite(self, image: np.ndarray) -> np.ndarray:
        """Resize and convert a BGR frame to the interpreter's input tensor"""
        resized = cv2.resize(image, self.input_size)
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

        input_dtype = self.input_details[0]['dtype']
        if input_dtype == np.float32:
            tensor = rgb.astype(np.float32) / 255.0
        else:
            tensor = rgb.astype(input_dtype)

        return np.expand_dims(tensor, axis=0)

    def _detect_with_tflite(self, image: np.ndarray) -> List[Detection]:
        """Invoke the interpreter and decode its post-processed outputs"""
        self.model.set_tensor(self.input_details[0]['index'], self._preprocess_for_tflite(image))
        self.model.invoke()

        outputs = [self.model.get_tensor(detail['index']) for detail in self.output_details]
        boxes, classes, scores, count = split_detection_outputs(outputs)

        h, w = image.shape[:2]
        return decode_detections(boxes, classes, scores, count, self.labels,
                                 (w, h), self.score_threshold)

    def _detect_with_yolo(self, image: np.ndarray) -> List[Detection]:
        """Run YOLO and convert its boxes"""
        detections = []
        results = self.model(image, conf=self.score_threshold, verbose=False)

        for result in results:
            boxes = result.boxes
            if boxes is None:
                continue
            for box in boxes:
                class_id = int(box.cls[0])
                label = self.labels[class_id] if class_id < len(self.labels) else f"unknown_{class_id}"
                detections.append(Detection(
                    bbox=box.xyxy[0].tolist(),
                    categories=[ScoredLabel(label=label, score=float(box.conf[0]), index=class_id)],
                ))

        return detections

    def benchmark_performance(self, image: np.ndarray, num_runs: int = 10) -> dict:
        """
        Benchmark detection performance

        Args:
            image: Test image
            num_runs: Number of detect() calls to average over

        Returns:
            Performance metrics
        """
        start_time = time.time()
        for _ in range(num_runs):
            self.detect(image)
        avg_time = (time.time() - start_time) / num_runs

        return {
            "backend": self.backend,
            "avg_inference_time": avg_time,
            "fps": 1.0 / avg_time if avg_time > 0 else 0,
        }


def split_detection_outputs(outputs: Sequence[np.ndarray]):
    """
    Identify boxes, classes, scores and count among TFLite post-processing outputs.
    Output order differs between exported models, so tensors are told apart by shape:
    boxes are [1, N, 4], count has a single element, and of the two [1, N] tensors
    the one holding only whole numbers is the class ids.
    """
    boxes = count = None
    vectors = []

    for output in outputs:
        array = np.asarray(output)
        if array.ndim == 3 and array.shape[-1] == 4:
            boxes = array[0]
        elif array.size == 1:
            count = int(array.reshape(-1)[0])
        else:
            vectors.append(array.reshape(-1))

    if boxes is None or len(vectors) != 2:
        raise ValueError(f"Unexpected detection outputs: {[np.shape(o) for o in outputs]}")

    first, second = vectors
    if np.all(np.mod(first, 1) == 0) and not np.all(np.mod(second, 1) == 0):
        classes, scores = first, second
    elif np.all(np.mod(second, 1) == 0) and not np.all(np.mod(first, 1) == 0):
        classes, scores = second, first
    else:
        # Standard TFLite_Detection_PostProcess order: boxes, classes, scores, count
        classes, scores = first, second

    if count is None:
        count = len(scores)

    return boxes, classes, scores, count


def decode_detections(boxes: np.ndarray, classes: np.ndarray, scores: np.ndarray,
                      count: int, labels: Sequence[str], image_size: Tuple[int, int],
                      score_threshold: float = 0.0) -> List[Detection]:
    """
    Convert normalized [ymin, xmin, ymax, xmax] boxes into pixel Detections

    Args:
        boxes: Normalized boxes, one row per detection
        classes: Class indices into labels
        scores: Scores in [0, 1]
        count: Number of valid rows
        labels: Label map
        image_size: (width, height) of the source frame
        score_threshold: Rows at or below this score are dropped

    Returns:
        Detections in model order
    """
    width, height = image_size
    detections = []

    for i in range(min(int(count), len(scores))):
        score = float(scores[i])
        if score <= score_threshold:
            continue

        class_id = int(classes[i])
        label = labels[class_id] if 0 <= class_id < len(labels) else f"unknown_{class_id}"
        if label == "???":
            continue

        ymin, xmin, ymax, xmax = (float(v) for v in boxes[i])
        bbox = [
            max(0.0, xmin * width),
            max(0.0, ymin * height),
            min(float(width), xmax * width),
            min(float(height), ymax * height),
        ]
        detections.append(Detection(bbox=bbox, categories=[ScoredLabel(label, score, class_id)]))

    return detections


if __name__ == "__main__":
    detector = ObjectDetector(model_path=os.environ.get("GARBAGE_MODEL", DEFAULT_TFLITE_MODEL))
    print(f"Detector backend: {detector.backend}")

    test_image = np.zeros((480, 640, 3), dtype=np.uint8)
    for detection in detector.detect(test_image):
        print(f"- {detection.top.label}: {detection.top.score:.2f}")

    if detector.is_loaded:
        performance = detector.benchmark_performance(test_image)
        print(f"Performance: {performance['fps']:.1f} FPS")
