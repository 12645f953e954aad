"""
MatchSession ties the pipeline together:

    DetectedHand[] -> GestureEngine -> HandStateSmoother -> MatchSession -> GameState

It owns the only GameState, applies actions strictly in dispatch order, lets
the FeedbackOrchestrator react after each step, and records a
SessionSnapshot when a match ends.
"""

import logging
import time
from collections import deque
from typing import Callable, Deque, List, Optional

from .config import DifficultyLevel
from .feedback import Feedback
from .game_state import (
    Action,
    EnemyDefeated,
    GameState,
    GameStatus,
    PauseMatch,
    RegisterShot,
    ReloadStart,
    ResumeMatch,
    ReturnMenu,
    SetWave,
    StartMatch,
    TakeDamage,
    create_initial_state,
    is_active,
    reduce,
)
from .gesture_engine import NEUTRAL_HAND_STATE, CombatGesture, HandState
from .orchestration import FeedbackOrchestrator, TimerScheduler
from .session_analytics import (
    SessionHistoryStore,
    SessionInsights,
    SessionSnapshot,
    append_session_history,
    derive_session_insights,
    snapshot_from_state,
)

logger = logging.getLogger(__name__)

# Intent returned to the renderer when the trigger is pulled; the renderer
# resolves the hit and reports back with register_shot(did_hit)
FIRE_INTENT = "fire"


class MatchSession:
    """
    Single authority over GameState.

    Attributes:
        clock: Wall clock in epoch seconds, stamped into actions
        scheduler: Timers shared with the orchestrator, advanced by tick()
        orchestrator: Side-effect layer observing every reducer step
        history: Finished sessions, newest first
    """

    def __init__(
        self,
        history_store: Optional[SessionHistoryStore] = None,
        clock: Callable[[], float] = time.time,
        feedback: Optional[Feedback] = None,
        scheduler: Optional[TimerScheduler] = None,
        difficulty: DifficultyLevel = DifficultyLevel.EASY,
    ):
        self.clock = clock
        self.history_store = history_store
        self.history: List[SessionSnapshot] = history_store.load() if history_store else []
        self.scheduler = scheduler or TimerScheduler(clock=clock)
        self.orchestrator = FeedbackOrchestrator(
            self.dispatch, feedback=feedback, scheduler=self.scheduler, on_fire=self._emit_fire
        )

        self._state = create_initial_state(difficulty)
        self._queue: Deque[Action] = deque()
        self._draining = False
        self._hand_state = NEUTRAL_HAND_STATE
        self._intents: List[str] = []
        self._next_id = max((s.id for s in self.history), default=0) + 1

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def hand_state(self) -> HandState:
        return self._hand_state

    @property
    def insights(self) -> SessionInsights:
        return derive_session_insights(self.history)

    @property
    def recommended_difficulty(self) -> DifficultyLevel:
        return self.insights.recommended_difficulty

    # --------- dispatch ---------

    def dispatch(self, action: Action) -> GameState:
        """
        Queue an action and apply everything queued, oldest first.

        Actions dispatched from inside a reaction (a timer firing, an
        observer) join the back of the queue rather than jumping ahead.

        Returns:
            State after the queue drained (or the current state if a drain is already running)
        """
        self._queue.append(action)
        if self._draining:
            return self._state
        self._draining = True
        try:
            while self._queue:
                self._step(self._queue.popleft())
        finally:
            self._draining = False
        return self._state

    def _step(self, action: Action) -> None:
        previous = self._state
        self._state = reduce(previous, action)
        if self._state is not previous and self._state.status is not previous.status:
            logger.info("Match %s -> %s", previous.status.value, self._state.status.value)
        self.orchestrator.observe(previous, action, self._state)
        if self._state.status is GameStatus.GAMEOVER and previous.status is not GameStatus.GAMEOVER:
            self._record(self._state)

    def _record(self, state: GameState) -> None:
        snapshot = snapshot_from_state(state, self._next_id)
        self._next_id += 1
        if self.history_store is not None:
            self.history = self.history_store.append(snapshot)
        else:
            self.history = append_session_history(self.history, snapshot)

    # --------- input ---------

    def handle_hand_state(self, hand_state: HandState) -> List[str]:
        """
        Turn a newly accepted HandState into actions and renderer intents.

        Combat gestures act on their rising edge: holding an open hand starts
        one reload. Pulling the trigger fires at once, and while it stays held
        tick() keeps returning a shot every fire interval.

        Args:
            hand_state: Debounced state from the smoother

        Returns:
            Intents for the renderer (FIRE_INTENT when a shot should be resolved)
        """
        previous = self._hand_state
        self._hand_state = hand_state
        if hand_state.combat is not previous.combat:
            if hand_state.combat is CombatGesture.RELOAD:
                self.dispatch(ReloadStart())
            elif hand_state.combat is CombatGesture.FIRE:
                self._emit_fire()

        self.orchestrator.on_hand_state(hand_state.movement, hand_state.combat)
        return self._drain_intents()

    def _can_fire(self) -> bool:
        s = self._state
        return is_active(s) and not s.is_reloading and s.ammo > 0

    def _emit_fire(self) -> None:
        if self._can_fire():
            self._intents.append(FIRE_INTENT)

    def _drain_intents(self) -> List[str]:
        intents, self._intents = self._intents, []
        return intents

    # --------- commands ---------

    def start(self, difficulty: Optional[DifficultyLevel] = None) -> GameState:
        difficulty = difficulty or self.recommended_difficulty
        logger.info("Starting match on %s", difficulty.value)
        return self.dispatch(StartMatch(difficulty=difficulty, started_at=self.clock()))

    def pause_toggle(self) -> GameState:
        if self._state.status is GameStatus.PAUSED:
            return self.dispatch(ResumeMatch())
        return self.dispatch(PauseMatch())

    def return_menu(self, difficulty: Optional[DifficultyLevel] = None) -> GameState:
        return self.dispatch(ReturnMenu(difficulty=difficulty or self.recommended_difficulty))

    def register_shot(self, did_hit: bool) -> GameState:
        return self.dispatch(RegisterShot(did_hit=did_hit))

    def enemy_defeated(self, points: int) -> GameState:
        return self.dispatch(EnemyDefeated(points=points))

    def take_damage(self, amount: int) -> GameState:
        return self.dispatch(TakeDamage(amount=amount, at=self.clock()))

    def set_wave(self, wave: int) -> GameState:
        return self.dispatch(SetWave(wave=wave, at=self.clock()))

    def tick(self, now: Optional[float] = None) -> List[str]:
        """Run timers that are due and return intents they produced; call once per frame."""
        self.scheduler.run_due(now)
        return self._drain_intents()

    def shutdown(self) -> None:
        self.orchestrator.shutdown()
        self.orchestrator.feedback.close()
