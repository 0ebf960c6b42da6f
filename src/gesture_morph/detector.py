"""Single-hand landmark extraction using MediaPipe."""

import logging
import time
from typing import Optional

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None

logger = logging.getLogger("gesture_morph.detector")


class HandDetector:
    """Extracts the 21 3D landmarks of one hand using MediaPipe Hands.

    Each landmark is (x, y) normalized to [0, 1] relative to image dimensions
    plus MediaPipe's relative depth z. The classifier works on these raw
    image coordinates, so no wrist-centering is applied here.
    """

    NUM_LANDMARKS = 21
    LANDMARK_DIM = 3  # x, y, z

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        static_image_mode: bool = False,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install gesture-morph[vision]"
            )

        self._hands = mp.solutions.hands.Hands(
            static_image_mode=static_image_mode,
            max_num_hands=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

    def detect(self, frame_rgb: np.ndarray) -> Optional[np.ndarray]:
        """Detect a hand and return its landmarks.

        Args:
            frame_rgb: RGB image as numpy array (H, W, 3), uint8.

        Returns:
            Landmark array of shape (21, 3), or None if no hand is visible.
        """
        results = self._hands.process(frame_rgb)

        if not results.multi_hand_landmarks:
            return None

        hand_landmarks = results.multi_hand_landmarks[0]
        return np.array(
            [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
            dtype=np.float64,
        )

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class CameraSource:
    """OpenCV capture feeding ``HandDetector``; yields (landmarks, timestamp)."""

    def __init__(self, index: int = 0, detector: Optional[HandDetector] = None):
        import cv2

        self._cv2 = cv2
        self._cap = cv2.VideoCapture(index)
        if not self._cap.isOpened():
            raise RuntimeError(f"Cannot open camera {index}")
        self.detector = detector or HandDetector()
        logger.info("Camera %d opened", index)

    def read(self) -> tuple[Optional[np.ndarray], Optional[float]]:
        """Grab one frame. Returns (landmarks or None, capture timestamp in s)."""
        ok, frame_bgr = self._cap.read()
        if not ok:
            return None, None
        timestamp = time.monotonic()
        frame_rgb = self._cv2.cvtColor(frame_bgr, self._cv2.COLOR_BGR2RGB)
        return self.detector.detect(frame_rgb), timestamp

    def close(self):
        self._cap.release()
        self.detector.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
