#!/usr/bin/env python3
"""
Garbage Sorter - Main Application

This script wires all components together:
- Camera interface with keep-only-latest frame delivery
- Object detector (TFLite EfficientDet-Lite0 or YOLO)
- Label classification / translation and the confidence gate
- Status panel window (or log output in headless mode)

Usage:
    python main.py [--config config.json] [--simulate] [--video PATH] [--headless] [--debug]
"""

import argparse
import logging
import time
import signal
import sys
import json
from pathlib import Path
from typing import Optional, Dict, Any
import threading

import cv2

from garbage.analyzer import FrameAnalyzer
from garbage.camera_interface import CameraInterface
from garbage.models.classifier import WasteClassifier
from garbage.models.detector import ObjectDetector
from garbage.utils.display_state import AcceptanceGate, DisplayStateCell
from garbage.utils.overlay import StatusRenderer

WINDOW_NAME = "Garbage Sorter"


class GarbageSorterApp:
    """
    Main garbage sorter application
    Frames are analyzed on a background thread; the main thread presents the state
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the application

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.running = False
        self.setup_logging()

        self.camera = None
        self.detector = None
        self.classifier = None
        self.gate = None
        self.analyzer = None
        self.renderer = None
        self.state_cell = DisplayStateCell()

        self.start_time = None
        self.processing_thread = None

        self.logger.info("Garbage Sorter initialized")

    def setup_logging(self):
        """Setup logging configuration"""
        log_level = getattr(logging, self.config.get('log_level', 'INFO'))
        log_dir = Path(self.config.get('log_directory', 'logs'))
        log_dir.mkdir(parents=True, exist_ok=True)

        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.StreamHandler(),
                logging.FileHandler(log_dir / 'garbage_sorter.log', encoding='utf-8')
            ]
        )

        self.logger = logging.getLogger(__name__)

    def initialize_components(self):
        """Initialize all components"""
        self.logger.info("Initializing components...")

        camera_config = self.config.get('camera', {})
        self.camera = CameraInterface(
            source=camera_config.get('source', 'auto'),
            resolution=tuple(camera_config.get('resolution', [640, 480])),
            fps=camera_config.get('fps', 30),
            sample_dir=camera_config.get('sample_dir')
        )

        detector_config = self.config.get('detector', {})
        self.detector = ObjectDetector(
            model_path=detector_config.get('model_path'),
            backend=detector_config.get('backend', 'tflite'),
            label_path=detector_config.get('label_path'),
            score_threshold=detector_config.get('score_threshold', 0.0),
            max_results=detector_config.get('max_results', 5),
            num_threads=detector_config.get('num_threads', 2)
        )

        self.classifier = WasteClassifier.from_config(self.config)

        gate_config = self.config.get('gate', {})
        self.gate = AcceptanceGate(
            self.state_cell,
            classifier=self.classifier,
            threshold=gate_config.get('threshold', 0.3)
        )

        self.analyzer = FrameAnalyzer(self.detector, self.gate)

        display_config = self.config.get('display', {})
        self.renderer = StatusRenderer(
            font_path=display_config.get('font_path'),
            font_size=display_config.get('font_size', 20),
            canvas_size=self.camera.resolution
        )

        self.logger.info(
            f"Components initialized (camera: {self.camera.camera_type}, "
            f"model: {'loaded' if self.detector.is_loaded else 'not loaded'})"
        )

    def start(self):
        """Start capturing and analyzing frames"""
        if self.running:
            self.logger.warning("Application is already running")
            return

        try:
            self.initialize_components()
            self.running = True
            self.start_time = time.time()

            self.camera.start_streaming()

            self.processing_thread = threading.Thread(target=self._processing_loop, daemon=True)
            self.processing_thread.start()

            self.logger.info("Garbage Sorter started")

        except Exception as e:
            self.logger.error(f"Failed to start: {e}")
            self.stop()
            raise

    def stop(self):
        """Stop analysis and release the camera"""
        if not self.running and self.camera is None:
            return

        self.logger.info("Stopping Garbage Sorter...")
        self.running = False

        if self.processing_thread and self.processing_thread.is_alive():
            self.processing_thread.join(timeout=5.0)

        if self.camera:
            self.camera.release()
            self.camera = None

        self._log_final_statistics()
        self.logger.info("Garbage Sorter stopped")

    def _processing_loop(self):
        """Analyze the newest frame until stopped"""
        self.logger.info("Starting analysis loop")

        detection_interval = self.config.get('detection_interval_seconds', 0.0)
        last_detection_time = 0.0

        while self.running:
            try:
                current_time = time.time()
                if (current_time - last_detection_time) < detection_interval:
                    time.sleep(0.05)
                    continue

                frame = self.camera.read_latest(timeout=1.0)
                if frame is None:
                    self.logger.debug("No frame available")
                    continue

                self.analyzer.analyze(frame)
                last_detection_time = current_time

            except Exception as e:
                self.logger.error(f"Error in analysis loop: {e}")
                time.sleep(1.0)

    def run_display(self):
        """Present the displayed state until stopped (main thread)"""
        headless = self.config.get('display', {}).get('headless', False)
        last_version = -1

        while self.running:
            if headless:
                last_version = self.log_state(last_version)
                time.sleep(0.2)
                continue

            cv2.imshow(WINDOW_NAME, self.render_status())
            if cv2.waitKey(30) & 0xFF == ord('q'):
                self.running = False

        if not headless:
            cv2.destroyAllWindows()

    def log_state(self, last_version: int) -> int:
        """Log the displayed state if it changed since last_version; returns the version shown"""
        state, version = self.state_cell.snapshot()
        if version != last_version:
            name, category, confidence = state.as_tuple()
            self.logger.info(f"Display: {name} | {category} | {confidence * 100:.1f}%")
        return version

    def render_status(self):
        """Latest preview frame with the status panel, or the panel alone without a frame"""
        state, _ = self.state_cell.snapshot()
        frame = self.camera.get_preview_frame() if self.camera else None
        camera_available = bool(self.camera and self.camera.get_camera_info()["available"])
        return self.renderer.draw(frame, state, self.detector.is_loaded, camera_available)

    def _log_final_statistics(self):
        """Log final statistics on shutdown"""
        if not self.start_time or not self.gate:
            return

        runtime_minutes = (time.time() - self.start_time) / 60.0
        gate_stats = self.gate.get_statistics()
        self.logger.info(
            f"Final Stats - Runtime: {runtime_minutes:.1f}min, "
            f"Frames analyzed: {self.analyzer.frames_analyzed}, "
            f"Accepted: {gate_stats['accepted']}, Rejected: {gate_stats['rejected']}"
        )

    def get_status(self) -> Dict:
        """Get current application status"""
        if not self.running:
            return {"status": "stopped"}

        name, category, confidence = self.state_cell.get().as_tuple()
        return {
            "status": "running",
            "uptime_minutes": (time.time() - self.start_time) / 60.0 if self.start_time else 0,
            "model_loaded": self.detector.is_loaded,
            "camera": self.camera.get_camera_info() if self.camera else None,
            "frames_analyzed": self.analyzer.frames_analyzed,
            "gate": self.gate.get_statistics(),
            "displayed": {"item": name, "category": category, "confidence": confidence}
        }


def merge_dicts(default: Dict, user: Dict) -> Dict:
    """Recursively merge user config over defaults"""
    result = default.copy()
    for key, value in user.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from file or use defaults"""
    default_config = {
        "camera": {
            "source": "auto",
            "resolution": [640, 480],
            "fps": 30,
            "sample_dir": None
        },
        "detector": {
            "backend": "tflite",
            "model_path": "efficientdet_lite0.tflite",
            "label_path": None,
            "score_threshold": 0.0,
            "max_results": 5,
            "num_threads": 2
        },
        "gate": {
            "threshold": 0.3
        },
        # None keeps the built-in tables
        "categories": {
            "recyclable": None,
            "general_trash": None,
            "food_waste": None
        },
        "translations": None,
        "display": {
            "headless": False,
            "font_path": None,
            "font_size": 20
        },
        "detection_interval_seconds": 0.0,
        "log_directory": "logs",
        "log_level": "INFO"
    }

    if config_path and Path(config_path).exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = json.load(f)
            return merge_dicts(default_config, user_config)
        except Exception as e:
            print(f"Warning: Failed to load config {config_path}: {e}")
            print("Using default configuration")

    return default_config


app = None


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    print("\nReceived shutdown signal. Stopping...")
    if app:
        app.stop()
    sys.exit(0)


def main():
    """Main entry point"""
    global app

    parser = argparse.ArgumentParser(description="Garbage Sorter")
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--simulate', '-s', action='store_true',
                        help='Use sample images instead of a camera')
    parser.add_argument('--video', '-v', help='Use video file as input source')
    parser.add_argument('--model', '-m', help='Detection model path')
    parser.add_argument('--headless', action='store_true',
                        help='Log results instead of opening a window')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')

    args = parser.parse_args()

    config = load_config(args.config)

    if args.simulate:
        config['camera']['source'] = 'simulated'
    elif args.video:
        config['camera']['source'] = args.video

    if args.model:
        config['detector']['model_path'] = args.model
        if args.model.endswith('.pt'):
            config['detector']['backend'] = 'yolo'

    if args.headless:
        config['display']['headless'] = True

    if args.debug:
        config['log_level'] = 'DEBUG'

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    app = GarbageSorterApp(config)

    try:
        print("Starting Garbage Sorter...")
        print(f"Camera source: {config['camera']['source']}")
        print("Press 'q' in the window or Ctrl+C to stop")

        app.start()
        app.run_display()

    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        print(f"Error: {e}")
    finally:
        if app:
            app.stop()


if __name__ == "__main__":
    main()
