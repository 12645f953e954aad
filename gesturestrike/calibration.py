"""
Calibration profile: the thresholds that parameterize gesture classification.

The profile is immutable. Changes go through ``apply_calibration_update``,
which validates the merged result and keeps the previous profile when the
update is rejected, so the classifier only ever sees in-range values.
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .geometry import Landmark, hand_center

logger = logging.getLogger(__name__)


class CalibrationError(ValueError):
    """Calibration input outside the accepted ranges."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class CalibrationProfile(BaseModel):
    """
    Per-player classifier thresholds.

    All values are normalized camera-space distances in [0, 1] except
    smoothing_frames, the number of consecutive frames a gesture must hold
    before it is accepted.
    Unknown keys are rejected, so a misspelled field fails validation instead
    of leaving the default in place.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True, allow_inf_nan=False)

    movement_center_x: float = Field(0.25, ge=0, le=1, alias="movementCenterX")
    movement_center_y: float = Field(0.5, ge=0, le=1, alias="movementCenterY")
    movement_deadzone: float = Field(0.08, ge=0, le=1, alias="movementDeadzone")
    fist_stop_threshold: float = Field(0.15, ge=0, le=1, alias="fistStopThreshold")
    index_extended_threshold: float = Field(0.3, ge=0, le=1, alias="indexExtendedThreshold")
    fire_curl_threshold: float = Field(0.12, ge=0, le=1, alias="fireCurlThreshold")
    open_hand_threshold: float = Field(0.3, ge=0, le=1, alias="openHandThreshold")
    smoothing_frames: int = Field(2, ge=1, le=10, strict=True, alias="smoothingFrames")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with snake_case keys."""
        return self.model_dump()


DEFAULT_PROFILE = CalibrationProfile()


def parse_calibration(data: Mapping[str, Any]) -> CalibrationProfile:
    """
    Validate a complete calibration record.

    Args:
        data: Mapping with snake_case or camelCase keys

    Returns:
        Validated CalibrationProfile

    Raises:
        CalibrationError: If any value is missing type or out of range
    """
    try:
        return CalibrationProfile.model_validate(dict(data))
    except ValidationError as exc:
        raise CalibrationError("Invalid calibration profile", errors=exc.errors()) from exc


def merge_calibration(current: CalibrationProfile, changes: Mapping[str, Any]) -> CalibrationProfile:
    """
    Merge a partial update over a profile and validate the result.

    Raises:
        CalibrationError: If the merged profile is invalid
    """
    merged = current.model_dump()
    merged.update(_normalize_keys(changes))
    return parse_calibration(merged)


def apply_calibration_update(current: CalibrationProfile, changes: Mapping[str, Any]) -> CalibrationProfile:
    """
    Merge changes over the current profile.

    Args:
        current: Profile in use
        changes: Partial update (snake_case or camelCase keys)

    Returns:
        The new profile, or ``current`` unchanged if the merged result is invalid
    """
    try:
        return merge_calibration(current, changes)
    except CalibrationError as exc:
        logger.warning("Rejected calibration update %s: %s", dict(changes), exc.errors)
        return current


def calibrate_movement_center(landmarks: Sequence[Landmark], current: CalibrationProfile) -> CalibrationProfile:
    """Re-center the movement deadzone on the hand's current wrist position."""
    x, y = hand_center(landmarks)
    return apply_calibration_update(current, {"movement_center_x": x, "movement_center_y": y})


_ALIASES = {
    field.alias: name
    for name, field in CalibrationProfile.model_fields.items()
    if field.alias
}


def _normalize_keys(changes: Mapping[str, Any]) -> Dict[str, Any]:
    return {_ALIASES.get(key, key): value for key, value in changes.items()}


class CalibrationStore:
    """
    JSON file persistence for a single calibration profile.

    A missing or malformed file loads as the default profile.
    """

    def __init__(self, path: str = "calibration.json"):
        self.path = path

    def load(self) -> CalibrationProfile:
        if not os.path.exists(self.path):
            return DEFAULT_PROFILE
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise CalibrationError("Calibration file must hold a JSON object")
            return parse_calibration(raw)
        except (OSError, json.JSONDecodeError, CalibrationError) as exc:
            logger.warning("Could not load calibration from %s, using defaults: %s", self.path, exc)
            return DEFAULT_PROFILE

    def save(self, profile: CalibrationProfile) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(profile.to_dict(), f, indent=2)
        logger.info("Saved calibration to %s", self.path)
