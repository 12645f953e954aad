"""Synthetic hand fixtures: 21-landmark hands built from fingertip offsets."""

import pytest

from gesturestrike.feedback import Feedback
from gesturestrike.geometry import Landmark
from gesturestrike.gesture_engine import DetectedHand

# Offsets are (dx, dy) from the wrist; negative dy points up the screen
CURLED = (0.0, -0.08)
EXTENDED = (0.0, -0.35)
HALF = (0.0, -0.1)

POSES = {
    "open": dict(index=EXTENDED, middle=EXTENDED, ring=EXTENDED, pinky=EXTENDED),
    "fist": dict(index=CURLED, middle=CURLED, ring=CURLED, pinky=CURLED, thumb=(0.05, -0.05)),
    "aim": dict(index=EXTENDED, middle=HALF, ring=CURLED, pinky=CURLED),
    "iron_sight": dict(index=EXTENDED, middle=EXTENDED, ring=CURLED, pinky=CURLED),
    # Index knuckle raised so a short tip-to-knuckle distance still reads as extended from the wrist
    "fire": dict(
        index=(0.0, -0.32), index_mcp=(0.0, -0.25), middle=HALF,
        ring=CURLED, pinky=CURLED, thumb=(-0.1, -0.3),
    ),
    # Gun shape but thumb tucked below the index knuckle
    "thumb_down": dict(index=EXTENDED, middle=HALF, ring=CURLED, pinky=CURLED, thumb=(-0.05, 0.05)),
}


def _chain(start, end, n=3):
    """n evenly spaced points from start (exclusive) to end (inclusive)."""
    return [
        Landmark(start.x + (end.x - start.x) * i / n, start.y + (end.y - start.y) * i / n)
        for i in range(1, n + 1)
    ]


def make_hand(
    wx,
    wy,
    index=EXTENDED,
    middle=EXTENDED,
    ring=EXTENDED,
    pinky=EXTENDED,
    thumb=(-0.1, -0.15),
    index_mcp=(0.0, -0.1),
):
    wrist = Landmark(wx, wy)

    def at(offset):
        return Landmark(wx + offset[0], wy + offset[1])

    landmarks = [wrist]
    landmarks += [at((thumb[0] * f, thumb[1] * f)) for f in (0.25, 0.5, 0.75, 1.0)]
    for mcp_offset, tip_offset in (
        (index_mcp, index),
        ((0.02, -0.1), middle),
        ((0.04, -0.1), ring),
        ((0.06, -0.1), pinky),
    ):
        mcp = at(mcp_offset)
        tip = at(tip_offset)
        landmarks.append(mcp)
        landmarks += _chain(mcp, tip)
    assert len(landmarks) == 21
    return landmarks


def make_pose(pose, wx=0.75, wy=0.6):
    return make_hand(wx, wy, **POSES[pose])


def detected(pose, wx=0.75, wy=0.6, handedness="Unknown"):
    return DetectedHand(landmarks=make_pose(pose, wx, wy), handedness=handedness)


class RecordingFeedback(Feedback):
    def __init__(self):
        self.cues = []
        self.closed = False

    def pulse(self, cue, pattern):
        self.cues.append((cue, list(pattern)))

    def close(self):
        self.closed = True

    @property
    def names(self):
        return [c for c, _ in self.cues]


class FakeClock:
    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def feedback():
    return RecordingFeedback()
