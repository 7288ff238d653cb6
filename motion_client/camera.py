"""
camera.py
---------
Frame sources for the capture side. A source owns a background acquisition
thread and hands every frame to an ``on_frame`` callback. The callback runs on
that thread, so it must not block and must not touch main loop state directly.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import cv2
import numpy as np

from motion_client.config import CAMERA_FRAMERATE, CAMERA_HEIGHT, CAMERA_WIDTH


class CameraError(Exception):
    """Raised when the capture device cannot be opened."""


@dataclass
class Frame:
    image: np.ndarray  # BGR, HxWx3 uint8
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def copy(self):
        return Frame(self.image.copy(), self.captured_at)


class VideoSource:
    """Camera backed by OpenCV's VideoCapture."""

    def __init__(self, camera_index, on_frame, width=CAMERA_WIDTH, height=CAMERA_HEIGHT):
        self.camera_index = camera_index
        self.on_frame = on_frame
        self.width = width
        self.height = height
        self._cap = None
        self._thread = None
        self._stop_event = threading.Event()

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return

        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise CameraError(f"Could not open camera {self.camera_index}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

        self._cap = cap
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="video-source", daemon=True)
        self._thread.start()
        logging.info(f"Camera {self.camera_index} started")

    def stop(self):
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2)
        self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        logging.info(f"Camera {self.camera_index} stopped")

    def _run(self):
        while not self._stop_event.is_set():
            ok, image = self._cap.read()
            if not ok or image is None:
                logging.warning("Camera returned no frame")
                time.sleep(0.1)
                continue
            # VideoCapture may reuse its buffer on the next read
            self.on_frame(Frame(image.copy()))


class MockCamera:
    """Synthetic camera: a bright square drifting across a dark background."""

    def __init__(self, on_frame, width=CAMERA_WIDTH, height=CAMERA_HEIGHT, fps=CAMERA_FRAMERATE,
                 square_size=60, step=8):
        self.on_frame = on_frame
        self.width = width
        self.height = height
        self.fps = fps
        self.square_size = square_size
        self.step = step
        self._position = 0
        self._thread = None
        self._stop_event = threading.Event()

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def next_image(self):
        image = np.full((self.height, self.width, 3), 20, dtype=np.uint8)
        span = max(1, self.width - self.square_size)
        x = self._position % span
        y = (self.height - self.square_size) // 2
        image[y:y + self.square_size, x:x + self.square_size] = 230
        self._position += self.step
        return image

    def start(self):
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="mock-camera", daemon=True)
        self._thread.start()
        logging.info("Mock camera started")

    def stop(self):
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2)
        self._thread = None
        logging.info("Mock camera stopped")

    def _run(self):
        delay = 1.0 / max(1, self.fps)
        while not self._stop_event.wait(delay):
            self.on_frame(Frame(self.next_image()))
