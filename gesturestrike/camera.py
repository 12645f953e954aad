"""
Webcam + MediaPipe Hands behind a narrow capability:

    cancel = start_detection(on_frame, on_error)

Landmarks are reported in unmirrored camera space (the classifier applies
its own mirror correction); only the preview image handed to ``on_frame``
is flipped so the player sees themselves as in a mirror.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import cv2
import mediapipe as mp

from .geometry import Landmark
from .gesture_engine import DetectedHand

logger = logging.getLogger(__name__)

MAX_READ_FAILURES = 30


class CameraError(RuntimeError):
    """The camera could not be opened or stopped delivering frames."""


@dataclass
class DetectedFrame:
    """
    One processed camera frame.

    Attributes:
        hands: Up to max_hands detected hands
        image: Mirrored BGR preview image
        timestamp: time.time() when the frame was read
    """
    hands: List[DetectedHand] = field(default_factory=list)
    image: Any = None
    timestamp: float = 0.0


def open_capture(camera_index: int = 0, width: int = 640, height: int = 480):
    """Open an OpenCV capture or raise CameraError with a message fit for the player."""
    cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        cap.release()
        raise CameraError(
            "No camera device was found. Check the connection and make sure no other app is using it."
        )
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return cap


def hands_from_results(result) -> List[DetectedHand]:
    """Convert MediaPipe Hands results into DetectedHand objects."""
    hands: List[DetectedHand] = []
    if not result.multi_hand_landmarks:
        return hands
    labels = result.multi_handedness or []
    for idx, hand_lms in enumerate(result.multi_hand_landmarks):
        label, score = "Unknown", 0.0
        if idx < len(labels) and labels[idx].classification:
            cls = labels[idx].classification[0]
            label, score = cls.label, float(cls.score)
        landmarks = [Landmark(p.x, p.y, p.z) for p in hand_lms.landmark]
        hands.append(DetectedHand(landmarks=landmarks, handedness=label, score=score))
    return hands


def start_detection(
    on_frame: Callable[[DetectedFrame], None],
    on_error: Optional[Callable[[str], None]] = None,
    camera_index: int = 0,
    max_hands: int = 2,
    min_detection_confidence: float = 0.5,
    min_tracking_confidence: float = 0.5,
) -> Callable[[], None]:
    """
    Start capturing and detecting hands on a background thread.

    Frames are delivered one at a time: ``on_frame`` finishes before the next
    frame is read, so classification never overlaps. After ``cancel()``
    returns no further callbacks are made.

    Args:
        on_frame: Called with each DetectedFrame
        on_error: Called once with a user-facing message if the camera fails
        camera_index: OpenCV device index
        max_hands: Maximum hands to track
        min_detection_confidence: MediaPipe detection threshold
        min_tracking_confidence: MediaPipe tracking threshold

    Returns:
        cancel() function stopping the loop and releasing the camera
    """
    stop_event = threading.Event()

    def report(message: str) -> None:
        logger.error("Camera error: %s", message)
        if on_error is not None and not stop_event.is_set():
            on_error(message)

    def run() -> None:
        try:
            cap = open_capture(camera_index)
        except CameraError as exc:
            report(str(exc))
            return

        hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=max_hands,
            model_complexity=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        logger.info("Camera %d started", camera_index)
        failures = 0
        try:
            while not stop_event.is_set():
                ok, frame = cap.read()
                if not ok:
                    failures += 1
                    if failures > MAX_READ_FAILURES:
                        raise CameraError("The camera stopped delivering frames.")
                    time.sleep(0.01)
                    continue
                failures = 0
                now = time.time()
                rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                result = hands.process(rgb)
                detected = DetectedFrame(
                    hands=hands_from_results(result),
                    image=cv2.flip(frame, 1),
                    timestamp=now,
                )
                if stop_event.is_set():
                    break
                on_frame(detected)
        except CameraError as exc:
            report(str(exc))
        finally:
            hands.close()
            cap.release()
            logger.info("Camera %d released", camera_index)

    thread = threading.Thread(target=run, name="gesturestrike-camera", daemon=True)
    thread.start()

    def cancel() -> None:
        stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout=1.0)

    return cancel
