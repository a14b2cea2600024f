"""
Camera Interface for Raspberry Pi, USB cameras, video files and simulation
Frames are grabbed on a background thread into a keep-only-latest buffer
"""

import cv2
import numpy as np
from typing import Optional
import logging
import threading
import time
import os
from pathlib import Path
import random

try:
    from picamera2 import Picamera2
    PICAMERA2_AVAILABLE = True
except ImportError:
    PICAMERA2_AVAILABLE = False

DEFAULT_SAMPLE_DIR = Path(__file__).parent.parent / "data" / "samples"


class LatestFrameBuffer:
    """
    Single-slot frame buffer.
    put() overwrites any frame not yet taken, take() hands the newest frame
    to the single consumer and empties the slot.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.available = threading.Condition(self.lock)
        self._frame: Optional[np.ndarray] = None
        self.dropped_count = 0

    def put(self, frame: np.ndarray):
        with self.available:
            if self._frame is not None:
                self.dropped_count += 1
            self._frame = frame
            self.available.notify()

    def take(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Newest frame, waiting up to timeout seconds; None if nothing arrived"""
        with self.available:
            if self._frame is None and timeout:
                self.available.wait(timeout)
            frame, self._frame = self._frame, None
            return frame

    def clear(self):
        with self.lock:
            self._frame = None


class CameraInterface:
    """
    Unified camera interface supporting:
    - Raspberry Pi Camera (via picamera2)
    - USB/Webcam (via OpenCV)
    - Video files (looped)
    - Simulated mode with sample images
    """

    def __init__(self, source='auto', resolution=(640, 480), fps=30,
                 sample_dir: Optional[str] = None):
        """
        Initialize camera interface

        Args:
            source: 'auto', 'pi', 'usb', 'simulated', video file path, or device index
            resolution: (width, height) tuple
            fps: Target frames per second
            sample_dir: Directory of .jpg images for simulated mode
        """
        self.resolution = tuple(resolution)
        self.fps = fps
        self.camera = None
        self.camera_type = None
        self.is_streaming = False
        self.sample_dir = Path(sample_dir) if sample_dir else DEFAULT_SAMPLE_DIR

        self.frame_buffer = LatestFrameBuffer()
        self.preview_frame = None
        self.grab_thread = None
        self.camera_lock = threading.Lock()

        self.setup_logging()
        self.setup_sample_images()

        if source == 'auto':
            self.auto_detect_camera()
        else:
            self.setup_camera(source)

    def setup_logging(self):
        """Setup logging for camera interface"""
        self.logger = logging.getLogger(__name__)

    def setup_sample_images(self):
        """Load sample images for simulated mode"""
        self.sample_images = []

        if not self.sample_dir.is_dir():
            return

        for img_path in sorted(self.sample_dir.glob("*.jpg")):
            img = cv2.imread(str(img_path))
            if img is None:
                self.logger.warning(f"Failed to load sample image {img_path}")
                continue
            self.sample_images.append(cv2.resize(img, self.resolution))
            self.logger.debug(f"Loaded sample image: {img_path.name}")

    def auto_detect_camera(self):
        """Automatically detect available camera"""
        if PICAMERA2_AVAILABLE and self._test_pi_camera():
            self.setup_camera('pi')
        elif self._test_usb_camera():
            self.setup_camera('usb')
        else:
            self.logger.warning("No cameras detected, using simulation mode")
            self.setup_camera('simulated')

    def _test_pi_camera(self) -> bool:
        """Test if Pi camera is available"""
        try:
            picam2 = Picamera2()
            picam2.configure(picam2.create_preview_configuration())
            picam2.start()
            time.sleep(0.1)
            picam2.stop()
            picam2.close()
            return True
        except Exception:
            return False

    def _test_usb_camera(self) -> bool:
        """Test if USB camera is available"""
        cap = cv2.VideoCapture(0)
        try:
            if cap.isOpened():
                ret, frame = cap.read()
                return ret and frame is not None
            return False
        finally:
            cap.release()

    def setup_camera(self, source):
        """Setup camera based on source type"""
        try:
            if source == 'pi' and PICAMERA2_AVAILABLE:
                self._setup_pi_camera()
            elif source == 'usb' or isinstance(source, int):
                self._setup_usb_camera(source)
            elif isinstance(source, str) and source != 'simulated' and os.path.exists(source):
                self._setup_video_file(source)
            else:
                self._setup_simulated_camera()
        except Exception as e:
            self.logger.error(f"Failed to setup camera {source}: {e}")
            self._setup_simulated_camera()

    def _setup_pi_camera(self):
        """Setup Raspberry Pi camera"""
        self.camera = Picamera2()
        config = self.camera.create_preview_configuration(
            main={"size": self.resolution, "format": "RGB888"}
        )
        self.camera.configure(config)
        self.camera.start()
        self.camera_type = 'pi'
        self.logger.info("Pi Camera initialized successfully")
        time.sleep(2)  # warm-up

    def _setup_usb_camera(self, source='usb'):
        """Setup USB/webcam"""
        device_id = 0 if source == 'usb' else source
        self.camera = cv2.VideoCapture(device_id)
        self.camera.set(cv2.CAP_PROP_FRAME_WIDTH, self.resolution[0])
        self.camera.set(cv2.CAP_PROP_FRAME_HEIGHT, self.resolution[1])
        self.camera.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.camera.isOpened():
            raise RuntimeError(f"Failed to open camera {device_id}")

        self.camera_type = 'usb'
        self.logger.info(f"USB Camera {device_id} initialized successfully")

    def _setup_simulated_camera(self):
        """Setup simulated camera mode"""
        self.camera = None
        self.camera_type = 'simulated'
        if not self.sample_images:
            self.logger.warning(f"No sample images in {self.sample_dir}, simulated frames will be None")
        self.logger.info("Simulated camera mode initialized")

    def _setup_video_file(self, video_path):
        """Setup video file as camera source"""
        self.camera = cv2.VideoCapture(video_path)
        if not self.camera.isOpened():
            raise RuntimeError(f"Could not open video file: {video_path}")

        self.camera_type = 'video'
        self.video_path = video_path
        self.video_fps = self.camera.get(cv2.CAP_PROP_FPS)
        self.logger.info(f"Video file initialized: {video_path} at {self.video_fps:.1f} FPS")

    def capture_frame(self) -> Optional[np.ndarray]:
        """
        Capture a single frame

        Returns:
            BGR image as numpy array or None if capture fails
        """
        try:
            with self.camera_lock:
                if self.camera_type == 'pi':
                    return cv2.cvtColor(self.camera.capture_array(), cv2.COLOR_RGB2BGR)
                elif self.camera_type == 'usb':
                    ret, frame = self.camera.read()
                    return frame if ret else None
                elif self.camera_type == 'video':
                    return self._capture_video_frame()
                else:
                    return self._capture_simulated_frame()
        except Exception as e:
            self.logger.error(f"Frame capture failed: {e}")
            return None

    def _capture_video_frame(self) -> Optional[np.ndarray]:
        """Capture frame from video file, looping at the end"""
        ret, frame = self.camera.read()
        if not ret:
            self.camera.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self.camera.read()
        return frame if ret else None

    def _capture_simulated_frame(self) -> Optional[np.ndarray]:
        """Random sample image with slight noise"""
        if not self.sample_images:
            return None

        base_img = random.choice(self.sample_images)
        noise = np.random.randint(-5, 5, base_img.shape, dtype=np.int16)
        return np.clip(base_img.astype(np.int16) + noise, 0, 255).astype(np.uint8)

    def start_streaming(self):
        """Start grabbing frames into the latest-frame buffer"""
        if self.is_streaming:
            return
        self.is_streaming = True
        self.grab_thread = threading.Thread(target=self._grab_loop, daemon=True)
        self.grab_thread.start()
        self.logger.info("Started frame streaming")

    def stop_streaming(self):
        """Stop the grabber thread"""
        if not self.is_streaming:
            return
        self.is_streaming = False
        if self.grab_thread and self.grab_thread.is_alive():
            self.grab_thread.join(timeout=2.0)
        self.frame_buffer.clear()
        self.logger.info("Stopped frame streaming")

    def _grab_loop(self):
        """Grab frames at the target fps, overwriting unconsumed ones"""
        interval = 1.0 / self.fps if self.fps else 0.0
        while self.is_streaming:
            started = time.time()
            frame = self.capture_frame()
            if frame is not None:
                self.preview_frame = frame
                self.frame_buffer.put(frame)
            time.sleep(max(0.0, interval - (time.time() - started)))

    def get_preview_frame(self) -> Optional[np.ndarray]:
        """Most recently grabbed frame for display; does not consume the buffer"""
        return self.preview_frame

    def read_latest(self, timeout: float = 1.0) -> Optional[np.ndarray]:
        """Newest grabbed frame; older undelivered frames are dropped"""
        return self.frame_buffer.take(timeout)

    def get_camera_info(self) -> dict:
        """Get camera information"""
        return {
            "type": self.camera_type,
            "resolution": self.resolution,
            "fps": self.fps,
            "is_streaming": self.is_streaming,
            "dropped_frames": self.frame_buffer.dropped_count,
            "available": self.camera is not None or bool(self.sample_images),
        }

    def release(self):
        """Release camera resources"""
        self.stop_streaming()
        try:
            with self.camera_lock:
                if self.camera_type == 'pi' and self.camera:
                    self.camera.stop()
                    self.camera.close()
                elif self.camera_type in ('usb', 'video') and self.camera:
                    self.camera.release()
                self.camera = None
            self.logger.info("Camera resources released")
        except Exception as e:
            self.logger.error(f"Failed to release camera: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
