"""
Match state machine.

``reduce(state, action)`` is the only way a GameState changes. It is pure:
no clocks, no timers, no I/O. Timestamps arrive inside the actions. Actions
whose preconditions do not hold return the input state object unchanged,
because noisy gesture input routinely produces bursts of contradictory
actions that must not raise.

    MENU -> PLAYING <-> PAUSED
    PLAYING -> GAMEOVER
    any -> MENU (ReturnMenu), any -> PLAYING (StartMatch)
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from .config import BASE_AMMO, MAX_HEALTH, DifficultyLevel

logger = logging.getLogger(__name__)


class GameStatus(str, Enum):
    MENU = "MENU"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    GAMEOVER = "GAMEOVER"


@dataclass(frozen=True)
class MatchStats:
    """
    Per-session counters, reset by StartMatch.

    Attributes:
        shots_fired: Shots that consumed ammo
        shots_hit: Shots the renderer reported as hits
        enemies_defeated: EnemyDefeated actions accepted
        highest_wave: Highest wave reached
        current_streak: Consecutive hits since the last miss
        best_streak: Longest hit streak this session
        session_started_at: Epoch seconds of StartMatch, None in the menu
        session_ended_at: Epoch seconds the match ended, None while running
    """
    shots_fired: int = 0
    shots_hit: int = 0
    enemies_defeated: int = 0
    highest_wave: int = 1
    current_streak: int = 0
    best_streak: int = 0
    session_started_at: Optional[float] = None
    session_ended_at: Optional[float] = None


@dataclass(frozen=True)
class GameState:
    ammo: int = BASE_AMMO
    max_ammo: int = BASE_AMMO
    score: int = 0
    health: int = MAX_HEALTH
    status: GameStatus = GameStatus.MENU
    is_reloading: bool = False
    last_damage_time: float = 0.0
    is_game_over: bool = False
    wave: int = 1
    difficulty: DifficultyLevel = DifficultyLevel.EASY
    stats: MatchStats = field(default_factory=MatchStats)


# --------- Actions ---------

@dataclass(frozen=True)
class StartMatch:
    difficulty: DifficultyLevel
    started_at: float


@dataclass(frozen=True)
class ReturnMenu:
    difficulty: DifficultyLevel = DifficultyLevel.EASY


@dataclass(frozen=True)
class PauseMatch:
    pass


@dataclass(frozen=True)
class ResumeMatch:
    pass


@dataclass(frozen=True)
class RegisterShot:
    did_hit: bool


@dataclass(frozen=True)
class ReloadStart:
    pass


@dataclass(frozen=True)
class ReloadComplete:
    pass


@dataclass(frozen=True)
class TakeDamage:
    amount: int
    at: float


@dataclass(frozen=True)
class EnemyDefeated:
    points: int


@dataclass(frozen=True)
class SetWave:
    wave: int
    at: float


Action = Union[
    StartMatch,
    ReturnMenu,
    PauseMatch,
    ResumeMatch,
    RegisterShot,
    ReloadStart,
    ReloadComplete,
    TakeDamage,
    EnemyDefeated,
    SetWave,
]


def create_initial_state(difficulty: DifficultyLevel = DifficultyLevel.EASY) -> GameState:
    """Fresh MENU state with the given difficulty pre-selected."""
    return GameState(difficulty=difficulty)


def accuracy(stats: MatchStats) -> float:
    """Hit percentage in [0, 100]; 0.0 when nothing was fired."""
    if stats.shots_fired <= 0:
        return 0.0
    return stats.shots_hit / stats.shots_fired * 100.0


def is_active(state: GameState) -> bool:
    return state.status is GameStatus.PLAYING


# --------- Reducer ---------

def _start_match(state: GameState, action: StartMatch) -> GameState:
    return replace(
        create_initial_state(action.difficulty),
        status=GameStatus.PLAYING,
        stats=MatchStats(session_started_at=action.started_at),
    )


def _register_shot(state: GameState, action: RegisterShot) -> GameState:
    if state.status is not GameStatus.PLAYING or state.is_reloading or state.ammo <= 0:
        return state
    stats = state.stats
    if action.did_hit:
        streak = stats.current_streak + 1
        stats = replace(
            stats,
            shots_fired=stats.shots_fired + 1,
            shots_hit=stats.shots_hit + 1,
            current_streak=streak,
            best_streak=max(stats.best_streak, streak),
        )
    else:
        stats = replace(stats, shots_fired=stats.shots_fired + 1, current_streak=0)
    return replace(state, ammo=state.ammo - 1, stats=stats)


def _take_damage(state: GameState, action: TakeDamage) -> GameState:
    if state.status is not GameStatus.PLAYING or state.health <= 0:
        return state
    health = max(0, state.health - max(0, action.amount))
    if health > 0:
        return replace(state, health=health, last_damage_time=action.at)
    return replace(
        state,
        health=0,
        last_damage_time=action.at,
        status=GameStatus.GAMEOVER,
        is_game_over=True,
        stats=replace(state.stats, session_ended_at=action.at),
    )


def _set_wave(state: GameState, action: SetWave) -> GameState:
    if state.status is GameStatus.MENU:
        return state
    stats = replace(state.stats, highest_wave=max(state.stats.highest_wave, action.wave))
    if state.status is GameStatus.GAMEOVER:
        stats = replace(stats, session_ended_at=action.at)
    return replace(state, wave=action.wave, stats=stats)


def reduce(state: GameState, action: Action) -> GameState:
    """
    Apply one action.

    Args:
        state: Current game state
        action: Action to apply

    Returns:
        The next state; the same object when the action is not legal right now
    """
    next_state = _apply(state, action)
    if next_state is state:
        logger.debug("Ignored %s while %s", type(action).__name__, state.status.value)
    return next_state


def _apply(state: GameState, action: Action) -> GameState:
    if isinstance(action, StartMatch):
        return _start_match(state, action)

    if isinstance(action, ReturnMenu):
        return create_initial_state(action.difficulty)

    if isinstance(action, PauseMatch):
        if state.status is not GameStatus.PLAYING:
            return state
        return replace(state, status=GameStatus.PAUSED)

    if isinstance(action, ResumeMatch):
        if state.status is not GameStatus.PAUSED:
            return state
        return replace(state, status=GameStatus.PLAYING)

    if isinstance(action, RegisterShot):
        return _register_shot(state, action)

    if isinstance(action, ReloadStart):
        if state.status is not GameStatus.PLAYING or state.is_reloading or state.ammo >= state.max_ammo:
            return state
        return replace(state, is_reloading=True)

    if isinstance(action, ReloadComplete):
        if not state.is_reloading:
            return state
        return replace(state, is_reloading=False, ammo=state.max_ammo)

    if isinstance(action, TakeDamage):
        return _take_damage(state, action)

    if isinstance(action, EnemyDefeated):
        if state.status is not GameStatus.PLAYING:
            return state
        return replace(
            state,
            score=state.score + action.points,
            stats=replace(state.stats, enemies_defeated=state.stats.enemies_defeated + 1),
        )

    if isinstance(action, SetWave):
        return _set_wave(state, action)

    return state
