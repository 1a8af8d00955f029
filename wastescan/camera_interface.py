"""
Capture device interface for live scanning
Supports Pi Camera, USB cameras, video files and simulated mode for development
"""

import logging
import os
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import cv2
import numpy as np

from .errors import DeviceAccessError

try:
    from picamera2 import Picamera2
    PICAMERA2_AVAILABLE = True
except ImportError:
    PICAMERA2_AVAILABLE = False

VIDEO_EXTENSIONS = ('.mp4', '.avi', '.mov', '.mkv')

DEFAULT_SAMPLES_DIR = Path(__file__).parent.parent / "data" / "samples"


@dataclass
class CaptureConstraints:
    """
    What the caller wants from the capture device

    source: 'auto', 'pi', 'usb', 'simulated', a video file path or a device index
    """

    source: Union[str, int] = 'auto'
    resolution: Tuple[int, int] = (640, 640)
    fps: int = 30
    samples_dir: Optional[str] = None


@dataclass
class CaptureStream:
    """An acquired video source. Owned by whoever acquired it until released."""

    kind: str
    handle: Any = None
    resolution: Tuple[int, int] = (640, 640)
    samples: List[np.ndarray] = field(default_factory=list)
    source: Union[str, int, None] = None
    active: bool = True
    frames_read: int = 0

    def __post_init__(self):
        self.logger = logging.getLogger(__name__)

    def is_ready(self) -> bool:
        """True once the source is open and has produced a frame"""
        if not self.active:
            return False
        if self.kind == 'simulated':
            return bool(self.samples)
        if self.handle is None or self.frames_read == 0:
            return False
        if self.kind in ('usb', 'video'):
            return self.handle.isOpened()
        return True

    def read_frame(self) -> Optional[np.ndarray]:
        """
        Capture a single frame

        Returns:
            BGR image as numpy array or None if no frame is available
        """
        if not self.active:
            return None

        if self.kind == 'pi':
            frame = cv2.cvtColor(self.handle.capture_array(), cv2.COLOR_RGB2BGR)
        elif self.kind == 'usb':
            ret, frame = self.handle.read()
            frame = frame if ret else None
        elif self.kind == 'video':
            frame = self._read_video_frame()
        else:
            frame = self._read_simulated_frame()

        if frame is not None:
            self.frames_read += 1
        return frame

    def _read_video_frame(self) -> Optional[np.ndarray]:
        ret, frame = self.handle.read()
        if ret:
            return frame
        # End of video - loop back to start
        self.handle.set(cv2.CAP_PROP_POS_FRAMES, 0)
        ret, frame = self.handle.read()
        return frame if ret else None

    def _read_simulated_frame(self) -> Optional[np.ndarray]:
        if not self.samples:
            return None
        base_img = random.choice(self.samples)
        # Slight noise to simulate sensor variation between frames
        noise = np.random.randint(-5, 5, base_img.shape, dtype=np.int16)
        return np.clip(base_img.astype(np.int16) + noise, 0, 255).astype(np.uint8)

    def stop(self):
        """Stop the underlying device. Safe to call more than once."""
        if not self.active:
            return
        self.active = False
        try:
            if self.kind == 'pi' and self.handle is not None:
                self.handle.stop()
                self.handle.close()
            elif self.kind in ('usb', 'video') and self.handle is not None:
                self.handle.release()
        finally:
            self.handle = None
            self.samples = []
        self.logger.info(f"Capture stream stopped ({self.kind})")

    def get_info(self) -> dict:
        return {
            "type": self.kind,
            "source": self.source,
            "resolution": self.resolution,
            "active": self.active,
            "frames_read": self.frames_read,
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


class CameraDevice:
    """
    Unified capture device API:
    - Raspberry Pi Camera (via picamera2)
    - USB/Webcam (via OpenCV)
    - Video files (via OpenCV, looped)
    - Simulated mode with sample images

    `acquire()` either returns a working stream or raises DeviceAccessError;
    it never falls back to another source on its own.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def acquire(self, constraints: Optional[CaptureConstraints] = None) -> CaptureStream:
        """
        Open a capture stream

        Args:
            constraints: Source, resolution and frame rate to request

        Raises:
            DeviceAccessError: No usable device, it could not be opened, or it
                produced no first frame
        """
        constraints = constraints or CaptureConstraints()
        source = constraints.source

        if source == 'simulated':
            return self._open_simulated(constraints)
        if source == 'auto':
            stream = self._acquire_auto(constraints)
        elif source == 'pi':
            stream = self._open_pi_camera(constraints)
        elif source == 'usb' or isinstance(source, int):
            stream = self._open_usb_camera(constraints)
        elif isinstance(source, str) and (source.lower().endswith(VIDEO_EXTENSIONS)
                                          or os.path.exists(source)):
            stream = self._open_video_file(constraints)
        else:
            raise DeviceAccessError(f"Unknown camera source: {source}")

        return self._check_first_frame(stream)

    def release(self, stream: Optional[CaptureStream]):
        """Stop all tracks of a stream previously returned by acquire()"""
        if stream is None:
            return
        try:
            stream.stop()
        except Exception as e:
            self.logger.error(f"Failed to release camera: {e}")

    def _check_first_frame(self, stream: CaptureStream) -> CaptureStream:
        """Read one frame so an opened but silent device fails here"""
        try:
            frame = stream.read_frame()
        except Exception as e:
            stream.stop()
            raise DeviceAccessError(f"Camera read failed: {e}") from e
        if frame is None:
            stream.stop()
            raise DeviceAccessError(f"Camera {stream.source} opened but produced no frame")
        return stream

    def _acquire_auto(self, constraints: CaptureConstraints) -> CaptureStream:
        if PICAMERA2_AVAILABLE:
            try:
                return self._open_pi_camera(constraints)
            except DeviceAccessError as e:
                self.logger.info(f"Pi Camera not available: {e}")
        return self._open_usb_camera(constraints)

    def _open_pi_camera(self, constraints: CaptureConstraints) -> CaptureStream:
        if not PICAMERA2_AVAILABLE:
            raise DeviceAccessError("picamera2 is not installed")
        camera = None
        try:
            camera = Picamera2()
            config = camera.create_preview_configuration(
                main={"size": tuple(constraints.resolution), "format": "RGB888"}
            )
            camera.configure(config)
            camera.start()
        except Exception as e:
            if camera is not None:
                camera.close()
            self.logger.error(f"Pi Camera setup failed: {e}")
            raise DeviceAccessError(f"Pi Camera unavailable: {e}") from e

        time.sleep(2)  # Allow camera to warm up
        self.logger.info("Pi Camera initialized successfully")
        return CaptureStream('pi', camera, tuple(constraints.resolution), source='pi')

    def _open_usb_camera(self, constraints: CaptureConstraints) -> CaptureStream:
        device_id = 0 if constraints.source in ('usb', 'auto') else constraints.source
        camera = cv2.VideoCapture(device_id)
        if not camera.isOpened():
            camera.release()
            raise DeviceAccessError(f"Failed to open camera {device_id}")

        camera.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.resolution[0])
        camera.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.resolution[1])
        camera.set(cv2.CAP_PROP_FPS, constraints.fps)

        self.logger.info(f"USB Camera {device_id} initialized successfully")
        return CaptureStream('usb', camera, tuple(constraints.resolution), source=device_id)

    def _open_video_file(self, constraints: CaptureConstraints) -> CaptureStream:
        video_path = constraints.source
        if not os.path.exists(video_path):
            raise DeviceAccessError(f"Video file not found: {video_path}")

        video = cv2.VideoCapture(video_path)
        if not video.isOpened():
            video.release()
            raise DeviceAccessError(f"Could not open video file: {video_path}")

        frame_count = int(video.get(cv2.CAP_PROP_FRAME_COUNT))
        self.logger.info(f"Video file initialized: {video_path} ({frame_count} frames)")
        return CaptureStream('video', video, tuple(constraints.resolution), source=video_path)

    def _open_simulated(self, constraints: CaptureConstraints) -> CaptureStream:
        sample_dir = Path(constraints.samples_dir) if constraints.samples_dir else DEFAULT_SAMPLES_DIR
        samples = []
        for img_path in sorted(sample_dir.glob("*.jpg")) + sorted(sample_dir.glob("*.png")):
            img = cv2.imread(str(img_path))
            if img is None:
                self.logger.warning(f"Failed to load sample image {img_path}")
                continue
            samples.append(cv2.resize(img, tuple(constraints.resolution)))

        if not samples:
            raise DeviceAccessError(f"No sample images found in {sample_dir}")

        self.logger.info(f"Simulated camera initialized with {len(samples)} sample images")
        return CaptureStream('simulated', None, tuple(constraints.resolution),
                             samples=samples, source=str(sample_dir))
