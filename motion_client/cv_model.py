"""
cv_model.py
-----------
Contains the computer vision functionality for the capture side. Provides a
stateful motion detector based on two-frame differencing and blob counting.

Used by capture.py to decide whether a frame is evidence worth uploading.
"""

from typing import List, Optional, Tuple

import cv2
import numpy as np

from motion_client.config import DIFFERENCE_THRESHOLD, MIN_BLOB_HEIGHT, MIN_BLOB_WIDTH

HIGHLIGHT_COLOR = (0, 0, 255)  # BGR red

# 3x3 opening removes isolated changed pixels
_NOISE_KERNEL = np.ones((3, 3), dtype=np.uint8)


def to_gray(image: np.ndarray) -> np.ndarray:
    """Return a single channel copy of a BGR or greyscale image."""
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def find_blobs(mask: np.ndarray, min_width: int, min_height: int) -> List[Tuple[int, int, int, int, int]]:
    """
    Count connected regions in a binary mask.

    Args:
        mask: uint8 mask where changed pixels are non zero
        min_width: Blobs narrower than this are ignored
        min_height: Blobs shorter than this are ignored

    Returns:
        List of tuples (x, y, width, height, pixel_area) for each accepted blob
    """
    count, _, stats, _ = cv2.connectedComponentsWithStats(mask, connectivity=8)
    blobs = []
    # Label 0 is the background
    for label in range(1, count):
        x, y, w, h, area = (int(v) for v in stats[label])
        if w < min_width or h < min_height:
            continue
        blobs.append((x, y, w, h, area))
    return blobs


class MotionDetector:
    """
    Two-frame difference motion detector.

    Every frame is compared against the previous one. Changed pixels are
    thresholded, cleaned with a morphological opening and grouped into blobs.
    The motion score is the fraction of the frame covered by blobs at least
    ``min_blob_width`` x ``min_blob_height`` pixels large.
    """

    def __init__(self, difference_threshold: int = DIFFERENCE_THRESHOLD,
                 min_blob_width: int = MIN_BLOB_WIDTH, min_blob_height: int = MIN_BLOB_HEIGHT,
                 suppress_noise: bool = True, highlight: bool = True):
        self.difference_threshold = difference_threshold
        self.min_blob_width = min_blob_width
        self.min_blob_height = min_blob_height
        self.suppress_noise = suppress_noise
        self.highlight = highlight
        self._previous: Optional[np.ndarray] = None

    def reset(self):
        """Forget the reference frame so the next frame starts a fresh comparison."""
        self._previous = None

    def motion_mask(self, gray: np.ndarray) -> np.ndarray:
        diff = cv2.absdiff(self._previous, gray)
        _, mask = cv2.threshold(diff, self.difference_threshold, 255, cv2.THRESH_BINARY)
        if self.suppress_noise:
            mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, _NOISE_KERNEL)
        return mask

    def classify(self, image: np.ndarray) -> Tuple[float, np.ndarray]:
        """
        Score the motion between this frame and the previous one.

        Args:
            image: BGR or greyscale frame

        Returns:
            Tuple (score, annotated) where score is in [0, 1] and annotated is a
            copy of the frame with accepted blobs outlined
        """
        gray = to_gray(image)
        annotated = image.copy()

        if self._previous is None or self._previous.shape != gray.shape:
            self._previous = gray.copy()
            return 0.0, annotated

        mask = self.motion_mask(gray)
        self._previous = gray.copy()

        blobs = find_blobs(mask, self.min_blob_width, self.min_blob_height)
        if not blobs:
            return 0.0, annotated

        moving_pixels = sum(area for _, _, _, _, area in blobs)
        score = moving_pixels / float(mask.size)

        if self.highlight and annotated.ndim == 3:
            for x, y, w, h, _ in blobs:
                cv2.rectangle(annotated, (x, y), (x + w - 1, y + h - 1), HIGHLIGHT_COLOR, 1)

        return score, annotated
