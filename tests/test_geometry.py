from types import SimpleNamespace

import pytest

from gesturestrike.geometry import (
    LANDMARK_COUNT,
    Landmark,
    as_landmark,
    as_landmarks,
    distance_2d,
    fingertip_distances,
    hand_center,
    is_complete_hand,
)

from conftest import make_pose


def test_as_landmark_accepts_common_shapes():
    assert as_landmark({"x": 0.1, "y": 0.2}) == Landmark(0.1, 0.2, 0.0)
    assert as_landmark((0.1, 0.2, 0.3)) == Landmark(0.1, 0.2, 0.3)
    assert as_landmark([1, 2]) == Landmark(1.0, 2.0, 0.0)
    assert as_landmark(SimpleNamespace(x=0.5, y=0.6, z=-0.1)) == Landmark(0.5, 0.6, -0.1)


def test_as_landmark_rejects_garbage():
    with pytest.raises(ValueError):
        as_landmark({"x": 0.1})
    with pytest.raises(ValueError):
        as_landmark("nope")


def test_distance_ignores_z():
    assert distance_2d(Landmark(0, 0, 5), Landmark(0.3, 0.4, -5)) == pytest.approx(0.5)


def test_fingertip_distances_and_center():
    hand = make_pose("fist", 0.3, 0.4)
    assert all(d == pytest.approx(0.08) for d in fingertip_distances(hand))
    assert hand_center(hand) == (0.3, 0.4)


def test_is_complete_hand():
    assert is_complete_hand(make_pose("open"))
    assert not is_complete_hand(as_landmarks([(0, 0)] * (LANDMARK_COUNT - 1)))
    assert not is_complete_hand(None)
