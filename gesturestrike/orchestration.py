"""
Side effects around the pure reducer: haptic cues, the reload timer, the
footstep cadence and automatic fire while the trigger is held.

Timers here never read or write game state. They only dispatch actions back
through the session, and they are cancelled when the session that created
them ends, so a late callback can't reach into the next match.

Timers are cooperative: the frame loop calls ``TimerScheduler.run_due`` once
per tick, so every callback runs on the same thread as the reducer.
"""

import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

from .config import (
    FIRE_INTERVAL_S,
    FOOTSTEP_INTERVAL_S,
    FOOTSTEP_METAL_AFTER,
    FOOTSTEP_METAL_CYCLE,
    RELOAD_DURATION_S,
)
from .feedback import Feedback, NullFeedback, pattern_for
from .game_state import (
    Action,
    GameState,
    GameStatus,
    RegisterShot,
    ReloadComplete,
    ReloadStart,
    ReturnMenu,
    StartMatch,
    TakeDamage,
)
from .gesture_engine import CombatGesture, MovementGesture

logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled callback. Once cancelled it never runs again."""

    def __init__(self, callback: Callable[[], None], due: float, interval: Optional[float] = None):
        self.callback = callback
        self.due = due
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled


class TimerScheduler:
    """
    Cooperative one-shot and repeating timers.

    Usage:
        scheduler = TimerScheduler()
        handle = scheduler.call_later(1.5, on_done)
        # once per frame:
        scheduler.run_due()
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def _push(self, handle: TimerHandle) -> TimerHandle:
        heapq.heappush(self._heap, (handle.due, next(self._seq), handle))
        return handle

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._push(TimerHandle(callback, self.clock() + max(0.0, delay)))

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """First run happens one interval from now."""
        if interval <= 0:
            raise ValueError("interval must be positive")
        return self._push(TimerHandle(callback, self.clock() + interval, interval))

    def run_due(self, now: Optional[float] = None) -> int:
        """
        Run every callback due at ``now``.

        A repeating timer runs at most once per call; if the loop fell behind
        its next run is rescheduled from ``now`` instead of bursting.

        Args:
            now: Current time (defaults to the scheduler clock)

        Returns:
            Number of callbacks run
        """
        now = self.clock() if now is None else now
        ran = 0
        rearm: List[TimerHandle] = []
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            if handle.interval is None:
                handle.cancelled = True
            else:
                handle.due += handle.interval
                if handle.due <= now:
                    handle.due = now + handle.interval
                rearm.append(handle)
            handle.callback()
            ran += 1
        for handle in rearm:
            if not handle.cancelled:
                self._push(handle)
        return ran

    def cancel_all(self) -> None:
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)


class FeedbackOrchestrator:
    """
    Watches reducer transitions and hand states and drives side effects.

    - Accepted shot: FIRE cue
    - Accepted reload start: RELOAD cue, ReloadComplete dispatched after the reload duration
    - Accepted damage: DAMAGE_CRITICAL cue
    - Movement other than STOP while PLAYING: a footstep cue every interval,
      on metal for the tail of every cycle of steps
    - FIRE held while PLAYING: on_fire called every fire interval until the
      gesture changes or play stops

    Attributes:
        dispatch: Callable that queues an action on the owning session
        on_fire: Called on each automatic re-fire; the session decides whether a shot is possible
        feedback: Sink receiving cue names and patterns
        scheduler: Timer source shared with the frame loop
    """

    def __init__(
        self,
        dispatch: Callable[[Action], None],
        feedback: Optional[Feedback] = None,
        scheduler: Optional[TimerScheduler] = None,
        reload_duration_s: float = RELOAD_DURATION_S,
        footstep_interval_s: float = FOOTSTEP_INTERVAL_S,
        on_fire: Optional[Callable[[], None]] = None,
        fire_interval_s: float = FIRE_INTERVAL_S,
    ):
        self.dispatch = dispatch
        self.on_fire = on_fire
        self.fire_interval_s = fire_interval_s
        self.feedback = feedback or NullFeedback()
        self.scheduler = scheduler or TimerScheduler()
        self.reload_duration_s = reload_duration_s
        self.footstep_interval_s = footstep_interval_s

        self.step_count = 0
        self._movement = MovementGesture.STOP
        self._combat = CombatGesture.IDLE
        self._status = GameStatus.MENU
        self._reload_timer: Optional[TimerHandle] = None
        self._footstep_timer: Optional[TimerHandle] = None
        self._fire_timer: Optional[TimerHandle] = None
        # Bumped whenever a session ends; callbacks from older generations do nothing
        self._generation = 0

    def _cue(self, name: str) -> None:
        self.feedback.pulse(name, pattern_for(name))

    def observe(self, previous: GameState, action: Action, current: GameState) -> None:
        """
        React to one reducer step.

        Args:
            previous: State before the action
            action: Action that was dispatched
            current: State returned by the reducer
        """
        accepted = current is not previous

        if isinstance(action, (StartMatch, ReturnMenu)) or (
            current.status is GameStatus.GAMEOVER and previous.status is not GameStatus.GAMEOVER
        ):
            self._end_session()

        if accepted:
            if isinstance(action, RegisterShot):
                self._cue("FIRE")
            elif isinstance(action, ReloadStart):
                self._cue("RELOAD")
                self._schedule_reload()
            elif isinstance(action, ReloadComplete):
                self._reload_timer = None
            elif isinstance(action, TakeDamage):
                self._cue("DAMAGE_CRITICAL")

        self._status = current.status
        self._update_footsteps()
        self._update_fire_cadence()

    def on_hand_state(self, movement: MovementGesture, combat: CombatGesture = CombatGesture.IDLE) -> None:
        self._movement = movement
        self._combat = combat
        self._update_footsteps()
        self._update_fire_cadence()

    def shutdown(self) -> None:
        """Cancel everything; used on teardown."""
        self._end_session()
        self._stop_footsteps()
        self._stop_fire_cadence()
        self.scheduler.cancel_all()

    @property
    def reload_pending(self) -> bool:
        return self._reload_timer is not None and self._reload_timer.active

    @property
    def walking(self) -> bool:
        return self._footstep_timer is not None and self._footstep_timer.active

    @property
    def firing(self) -> bool:
        return self._fire_timer is not None and self._fire_timer.active

    # --------- reload ---------

    def _schedule_reload(self) -> None:
        if self._reload_timer is not None:
            self._reload_timer.cancel()
        generation = self._generation

        def complete() -> None:
            if generation != self._generation:
                return
            self._reload_timer = None
            self.dispatch(ReloadComplete())

        self._reload_timer = self.scheduler.call_later(self.reload_duration_s, complete)

    def _end_session(self) -> None:
        self._generation += 1
        if self._reload_timer is not None:
            logger.debug("Cancelling pending reload")
            self._reload_timer.cancel()
            self._reload_timer = None

    # --------- footsteps ---------

    def _update_footsteps(self) -> None:
        should_walk = self._status is GameStatus.PLAYING and self._movement is not MovementGesture.STOP
        if should_walk and not self.walking:
            self._footstep_timer = self.scheduler.call_every(self.footstep_interval_s, self._step)
        elif not should_walk:
            self._stop_footsteps()

    def _stop_footsteps(self) -> None:
        if self._footstep_timer is not None:
            self._footstep_timer.cancel()
            self._footstep_timer = None

    def _step(self) -> None:
        self.step_count += 1
        on_metal = self.step_count % FOOTSTEP_METAL_CYCLE > FOOTSTEP_METAL_AFTER
        self._cue("WALK_METAL" if on_metal else "WALK_CONCRETE")

    # --------- automatic fire ---------

    def _update_fire_cadence(self) -> None:
        should_fire = self._status is GameStatus.PLAYING and self._combat is CombatGesture.FIRE
        if should_fire and not self.firing:
            self._fire_timer = self.scheduler.call_every(self.fire_interval_s, self._refire)
        elif not should_fire:
            self._stop_fire_cadence()

    def _stop_fire_cadence(self) -> None:
        if self._fire_timer is not None:
            self._fire_timer.cancel()
            self._fire_timer = None

    def _refire(self) -> None:
        if self.on_fire is not None:
            self.on_fire()
