"""
Landmark geometry helpers.

Pure functions over the 21 MediaPipe hand landmarks. Every threshold in the
classifier is compared against planar distances in normalized camera space,
so ``z`` is carried along but ignored by ``distance_2d``.
"""

import math
from typing import Any, List, NamedTuple, Sequence, Tuple

import numpy as np


# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC = 1
THUMB_MCP = 2
THUMB_IP = 3
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_PIP = 6
INDEX_DIP = 7
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_PIP = 10
MIDDLE_DIP = 11
MIDDLE_TIP = 12
RING_MCP = 13
RING_PIP = 14
RING_DIP = 15
RING_TIP = 16
PINKY_MCP = 17
PINKY_PIP = 18
PINKY_DIP = 19
PINKY_TIP = 20

LANDMARK_COUNT = 21

# Index, middle, ring, pinky
FINGERTIPS: Tuple[int, int, int, int] = (INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP)


class Landmark(NamedTuple):
    """A single hand landmark in normalized [0, 1] camera coordinates."""
    x: float
    y: float
    z: float = 0.0


def as_landmark(entry: Any) -> Landmark:
    """
    Coerce a landmark-like value into a Landmark.

    Accepts MediaPipe landmark objects (attributes x, y, z), dicts with
    "x"/"y"/"z" keys, or sequences of two or three numbers.

    Args:
        entry: Landmark-like value

    Returns:
        Landmark with float coordinates

    Raises:
        ValueError: If the value has no recognizable x/y coordinates
    """
    if isinstance(entry, Landmark):
        return entry
    if hasattr(entry, "x") and hasattr(entry, "y"):
        return Landmark(float(entry.x), float(entry.y), float(getattr(entry, "z", 0.0)))
    if isinstance(entry, dict):
        if "x" not in entry or "y" not in entry:
            raise ValueError("Landmark dict needs 'x' and 'y' keys")
        return Landmark(float(entry["x"]), float(entry["y"]), float(entry.get("z", 0.0)))
    if isinstance(entry, (list, tuple)) and len(entry) >= 2:
        z = float(entry[2]) if len(entry) >= 3 else 0.0
        return Landmark(float(entry[0]), float(entry[1]), z)
    raise ValueError(f"Unsupported landmark format: {entry!r}")


def as_landmarks(entries: Sequence[Any]) -> List[Landmark]:
    return [as_landmark(e) for e in entries]


def distance_2d(a: Landmark, b: Landmark) -> float:
    """
    Planar Euclidean distance between two landmarks.

    Args:
        a: First landmark
        b: Second landmark

    Returns:
        Distance over (x, y), z ignored
    """
    return math.hypot(a.x - b.x, a.y - b.y)


def hand_center(landmarks: Sequence[Landmark]) -> Tuple[float, float]:
    """(x, y) of the wrist, used as the hand's position on screen."""
    w = landmarks[WRIST]
    return (w.x, w.y)


def fingertip_distances(landmarks: Sequence[Landmark], origin: int = WRIST) -> List[float]:
    """
    Distances from each non-thumb fingertip to a reference landmark.

    Args:
        landmarks: 21 hand landmarks
        origin: Reference landmark index (wrist by default)

    Returns:
        [index, middle, ring, pinky] planar distances
    """
    ref = landmarks[origin]
    tips = np.array([(landmarks[tip].x - ref.x, landmarks[tip].y - ref.y) for tip in FINGERTIPS])
    return np.linalg.norm(tips, axis=1).tolist()


def is_complete_hand(landmarks: Sequence[Any]) -> bool:
    return landmarks is not None and len(landmarks) >= LANDMARK_COUNT
