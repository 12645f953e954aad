import json

import pytest

from gesturestrike.calibration import (
    DEFAULT_PROFILE,
    CalibrationError,
    CalibrationProfile,
    CalibrationStore,
    apply_calibration_update,
    calibrate_movement_center,
    merge_calibration,
    parse_calibration,
)

from conftest import make_pose


def test_defaults():
    p = CalibrationProfile()
    assert (p.movement_center_x, p.movement_center_y, p.movement_deadzone) == (0.25, 0.5, 0.08)
    assert p.fist_stop_threshold == 0.15
    assert p.index_extended_threshold == 0.3
    assert p.fire_curl_threshold == 0.12
    assert p.open_hand_threshold == 0.3
    assert p.smoothing_frames == 2


def test_parse_accepts_camel_case_keys():
    p = parse_calibration({"movementCenterX": 0.4, "smoothingFrames": 3})
    assert p.movement_center_x == 0.4
    assert p.smoothing_frames == 3


@pytest.mark.parametrize(
    "changes",
    [
        {"movement_deadzone": 1.5},
        {"fire_curl_threshold": -0.01},
        {"smoothing_frames": 0},
        {"smoothing_frames": 11},
        {"smoothing_frames": 2.5},
        {"movementCenterY": "middle"},
    ],
)
def test_out_of_range_rejected(changes):
    with pytest.raises(CalibrationError) as info:
        merge_calibration(DEFAULT_PROFILE, changes)
    assert info.value.errors


def test_rejected_update_keeps_previous_profile():
    current = apply_calibration_update(DEFAULT_PROFILE, {"movement_deadzone": 0.1})
    assert current.movement_deadzone == 0.1
    assert apply_calibration_update(current, {"movement_deadzone": 2}) is current


def test_profile_is_immutable():
    with pytest.raises(Exception):
        DEFAULT_PROFILE.movement_deadzone = 0.5


def test_calibrate_movement_center_uses_wrist():
    hand = make_pose("open", 0.31, 0.44)
    p = calibrate_movement_center(hand, DEFAULT_PROFILE)
    assert (p.movement_center_x, p.movement_center_y) == pytest.approx((0.31, 0.44))
    assert p.movement_deadzone == DEFAULT_PROFILE.movement_deadzone


def test_store_falls_back_to_defaults(tmp_path):
    path = tmp_path / "calibration.json"
    store = CalibrationStore(str(path))
    assert store.load() == DEFAULT_PROFILE

    path.write_text("{not json")
    assert store.load() == DEFAULT_PROFILE

    path.write_text(json.dumps({"movementDeadzone": 9}))
    assert store.load() == DEFAULT_PROFILE

    path.write_text(json.dumps([1, 2]))
    assert store.load() == DEFAULT_PROFILE


def test_store_save_then_load(tmp_path):
    store = CalibrationStore(str(tmp_path / "calibration.json"))
    profile = parse_calibration({"movement_center_x": 0.2, "smoothing_frames": 4})
    store.save(profile)
    assert store.load() == profile


@pytest.mark.parametrize("changes", [{"fistStopThreshhold": 0.9}, {"movement_center": 0.4}, {"smoothingFrames": 3, "speed": 2}])
def test_unknown_keys_rejected(changes):
    with pytest.raises(CalibrationError):
        merge_calibration(DEFAULT_PROFILE, changes)
    assert apply_calibration_update(DEFAULT_PROFILE, changes) is DEFAULT_PROFILE


def test_non_finite_values_rejected():
    with pytest.raises(CalibrationError):
        parse_calibration({"movement_deadzone": float("nan")})
