"""
Gesture Engine - hand landmarks to movement and combat commands.

Each processed camera frame carries up to two hands. The hand whose wrist is
on the left half of the (unmirrored) camera image drives movement, the other
drives combat:

- Movement: a closed fist stops; otherwise the wrist position relative to
  the calibrated center picks FORWARD / BACKWARD / LEFT / RIGHT, with the
  horizontal axis inverted because the player sees a mirrored preview.
- Combat: an open hand reloads; a "gun" pose (index out, thumb up, ring and
  pinky curled) aims, adds the middle finger for iron sights, and fires when
  the index finger curls back toward its base like a trigger pull.

Architecture:
- Gesture: Base class for static hand poses parameterized by a calibration profile
- classify_movement / classify_combat: Pure per-hand classifiers
- GestureEngine: Assigns hands to roles and builds one HandState per frame
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .calibration import DEFAULT_PROFILE, CalibrationProfile
from .geometry import (
    INDEX_MCP,
    INDEX_TIP,
    MIDDLE_TIP,
    PINKY_TIP,
    RING_TIP,
    THUMB_TIP,
    WRIST,
    Landmark,
    as_landmarks,
    distance_2d,
    fingertip_distances,
    is_complete_hand,
)

logger = logging.getLogger(__name__)

# Ring and pinky tips closer to the wrist than this count as curled in the gun pose
OTHERS_CURLED_THRESHOLD = 0.2

# Wrists left of this x (camera space) belong to the movement hand
ROLE_SPLIT_X = 0.5


class MovementGesture(str, Enum):
    STOP = "STOP"
    FORWARD = "FORWARD"
    BACKWARD = "BACKWARD"
    LEFT = "LEFT"
    RIGHT = "RIGHT"


class CombatGesture(str, Enum):
    IDLE = "IDLE"
    AIM = "AIM"
    IRON_SIGHT = "IRON_SIGHT"
    FIRE = "FIRE"
    RELOAD = "RELOAD"


class HandRole(str, Enum):
    MOVEMENT = "movement"
    COMBAT = "combat"


@dataclass(frozen=True)
class HandState:
    """
    Classified intent for one frame.

    Immutable: a new HandState replaces the old one on every accepted change,
    and two states compare equal field by field.
    """
    movement: MovementGesture = MovementGesture.STOP
    combat: CombatGesture = CombatGesture.IDLE
    left_hand_present: bool = False
    right_hand_present: bool = False


NEUTRAL_HAND_STATE = HandState()


@dataclass
class DetectedHand:
    """
    One hand as reported by the detector.

    Attributes:
        landmarks: 21 landmarks in unmirrored, normalized camera space
        handedness: Detector label ("Left" / "Right"), before mirror correction
        score: Detector confidence for the handedness label
    """
    landmarks: List[Landmark]
    handedness: str = "Unknown"
    score: float = 1.0

    @classmethod
    def from_points(cls, points: Sequence, handedness: str = "Unknown", score: float = 1.0) -> "DetectedHand":
        return cls(landmarks=as_landmarks(points), handedness=handedness, score=score)


def mirrored_side(label: str) -> str:
    """
    Map a detector handedness label to the player's physical hand.

    The detector labels hands as if the image were mirrored; on the raw
    camera image its "Right" is the player's left hand and vice versa.
    """
    if label == "Right":
        return "Left"
    if label == "Left":
        return "Right"
    return label


def assign_role(landmarks: Sequence[Landmark]) -> HandRole:
    """Movement for wrists on the left half of the camera image, combat otherwise."""
    return HandRole.MOVEMENT if landmarks[WRIST].x < ROLE_SPLIT_X else HandRole.COMBAT


# --------- Gesture base class and poses ---------

class Gesture:
    """
    Base class for static hand pose detection.

    Poses read their thresholds from a CalibrationProfile at detection time so
    that a profile swap takes effect on the next frame.

    Attributes:
        name: Unique identifier for this pose
    """
    name: str

    def __init__(self, name: str):
        self.name = name

    def detect(self, landmarks: Sequence[Landmark], profile: CalibrationProfile) -> bool:
        """
        Detect if this pose is present in the given hand landmarks.

        Args:
            landmarks: 21 hand landmarks
            profile: Thresholds to compare against

        Returns:
            True if the pose is detected, False otherwise
        """
        raise NotImplementedError


class FistGesture(Gesture):
    """All four fingertips pulled in close to the wrist."""
    def __init__(self):
        super().__init__("fist")

    def detect(self, landmarks, profile) -> bool:
        return all(d < profile.fist_stop_threshold for d in fingertip_distances(landmarks))


class OpenHandGesture(Gesture):
    """All four fingertips stretched away from the wrist."""
    def __init__(self):
        super().__init__("open_hand")

    def detect(self, landmarks, profile) -> bool:
        return all(d > profile.open_hand_threshold for d in fingertip_distances(landmarks))


class GunPoseGesture(Gesture):
    """
    Pistol pose: index extended, thumb raised above the index base, ring and
    pinky curled toward the wrist.

    The thumb check compares y coordinates: a smaller y is higher on screen.
    """
    def __init__(self, curl_threshold: float = OTHERS_CURLED_THRESHOLD):
        super().__init__("gun")
        self.curl_threshold = curl_threshold

    def detect(self, landmarks, profile) -> bool:
        wrist = landmarks[WRIST]
        index_extended = distance_2d(landmarks[INDEX_TIP], wrist) > profile.index_extended_threshold
        thumb_up = landmarks[THUMB_TIP].y < landmarks[INDEX_MCP].y
        others_curled = all(
            distance_2d(landmarks[tip], wrist) < self.curl_threshold
            for tip in (RING_TIP, PINKY_TIP)
        )
        return index_extended and thumb_up and others_curled


FIST = FistGesture()
OPEN_HAND = OpenHandGesture()
GUN_POSE = GunPoseGesture()


# --------- Classifiers ---------

def classify_movement(landmarks: Sequence[Landmark], profile: CalibrationProfile = DEFAULT_PROFILE) -> MovementGesture:
    """
    Classify the movement hand.

    Vertical deviation wins over horizontal when both leave the deadzone.

    Args:
        landmarks: 21 hand landmarks in camera space
        profile: Calibration thresholds

    Returns:
        The MovementGesture for this frame
    """
    if FIST.detect(landmarks, profile):
        return MovementGesture.STOP

    wrist = landmarks[WRIST]
    cx, cy = profile.movement_center_x, profile.movement_center_y
    dz = profile.movement_deadzone

    if wrist.y < cy - dz:
        return MovementGesture.FORWARD
    if wrist.y > cy + dz:
        return MovementGesture.BACKWARD
    # Camera x is mirrored relative to what the player sees
    if wrist.x < cx - dz:
        return MovementGesture.RIGHT
    if wrist.x > cx + dz:
        return MovementGesture.LEFT
    return MovementGesture.STOP


def classify_combat(landmarks: Sequence[Landmark], profile: CalibrationProfile = DEFAULT_PROFILE) -> CombatGesture:
    """
    Classify the combat hand.

    Args:
        landmarks: 21 hand landmarks in camera space
        profile: Calibration thresholds

    Returns:
        The CombatGesture for this frame
    """
    if OPEN_HAND.detect(landmarks, profile):
        return CombatGesture.RELOAD

    if not GUN_POSE.detect(landmarks, profile):
        return CombatGesture.IDLE

    # Index tip pulled back toward its base simulates the trigger
    trigger_pull = distance_2d(landmarks[INDEX_TIP], landmarks[INDEX_MCP])
    if trigger_pull < profile.fire_curl_threshold:
        return CombatGesture.FIRE
    if distance_2d(landmarks[MIDDLE_TIP], landmarks[WRIST]) > profile.index_extended_threshold:
        return CombatGesture.IRON_SIGHT
    return CombatGesture.AIM


class GestureEngine:
    """
    Builds one HandState per frame from the detector's hands.

    The first hand found for each role is used; any extra hand on the same
    side of the frame is ignored. A role with no hand keeps its neutral
    gesture (STOP / IDLE).

    Attributes:
        profile: Calibration profile read by the classifiers
    """

    def __init__(self, profile: Optional[CalibrationProfile] = None):
        self.profile: CalibrationProfile = profile or DEFAULT_PROFILE

    def set_profile(self, profile: CalibrationProfile) -> None:
        self.profile = profile

    def process(self, hands: Sequence[DetectedHand]) -> HandState:
        """
        Classify every detected hand in a frame.

        Args:
            hands: Hands reported by the detector for this frame

        Returns:
            HandState for the frame (not yet debounced)
        """
        movement = MovementGesture.STOP
        combat = CombatGesture.IDLE
        left_present = False
        right_present = False

        for hand in hands:
            if not is_complete_hand(hand.landmarks):
                logger.debug("Skipping hand with %d landmarks", len(hand.landmarks or []))
                continue
            role = assign_role(hand.landmarks)
            if role is HandRole.MOVEMENT:
                if left_present:
                    continue
                left_present = True
                movement = classify_movement(hand.landmarks, self.profile)
            else:
                if right_present:
                    continue
                right_present = True
                combat = classify_combat(hand.landmarks, self.profile)

        return HandState(
            movement=movement,
            combat=combat,
            left_hand_present=left_present,
            right_hand_present=right_present,
        )

    def movement_hand(self, hands: Sequence[DetectedHand]) -> Optional[DetectedHand]:
        """The hand currently assigned to movement, if any."""
        for hand in hands:
            if is_complete_hand(hand.landmarks) and assign_role(hand.landmarks) is HandRole.MOVEMENT:
                return hand
        return None
