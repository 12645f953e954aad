"""
Temporal debounce for classified hand states.

Policy: a candidate HandState is accepted only after it has been produced by
N consecutive frames (N = calibration ``smoothing_frames``), and it is
propagated only when it differs from the last propagated state. A single
odd frame, such as a hand occluded for one frame, restarts the streak but
never reaches downstream consumers.

With N consecutive frames a change always costs exactly N frames of latency,
and an oscillating input never switches state, unlike a majority vote over a
window where a flickering gesture can win on 2 of 3 frames.
"""

import logging
from typing import Optional

from .gesture_engine import NEUTRAL_HAND_STATE, HandState

logger = logging.getLogger(__name__)

MIN_SMOOTHING_FRAMES = 1
MAX_SMOOTHING_FRAMES = 10


class HandStateSmoother:
    """
    Suppresses flicker between frames and drops unchanged states.

    Usage:
        smoother = HandStateSmoother(profile.smoothing_frames)
        stable = smoother.update(engine.process(hands))
        if stable is not None:
            session.handle_hand_state(stable)
    """

    def __init__(self, smoothing_frames: int = 1):
        self.smoothing_frames = MIN_SMOOTHING_FRAMES
        self.configure(smoothing_frames)
        self._stable: Optional[HandState] = None
        self._pending: Optional[HandState] = None
        self._streak = 0

    def configure(self, smoothing_frames: int) -> None:
        """Change N; the current streak is kept and checked against the new value."""
        self.smoothing_frames = max(MIN_SMOOTHING_FRAMES, min(MAX_SMOOTHING_FRAMES, int(smoothing_frames)))

    @property
    def current(self) -> HandState:
        """Last propagated state (neutral before the first one)."""
        return self._stable if self._stable is not None else NEUTRAL_HAND_STATE

    def reset(self) -> None:
        self._stable = None
        self._pending = None
        self._streak = 0

    def update(self, candidate: HandState) -> Optional[HandState]:
        """
        Feed one frame's classification.

        Args:
            candidate: Raw HandState from the gesture engine

        Returns:
            The newly accepted HandState, or None when nothing downstream needs to change
        """
        if candidate == self._pending:
            self._streak += 1
        else:
            self._pending = candidate
            self._streak = 1

        if self._streak < self.smoothing_frames:
            return None
        if candidate == self._stable:
            return None

        logger.debug("Hand state accepted after %d frames: %s", self._streak, candidate)
        self._stable = candidate
        return candidate
