from dataclasses import replace

import pytest

from gesturestrike.config import BASE_AMMO, MAX_HEALTH, DifficultyLevel
from gesturestrike.game_state import (
    EnemyDefeated,
    GameState,
    GameStatus,
    MatchStats,
    PauseMatch,
    RegisterShot,
    ReloadComplete,
    ReloadStart,
    ResumeMatch,
    ReturnMenu,
    SetWave,
    StartMatch,
    TakeDamage,
    accuracy,
    create_initial_state,
    reduce,
)


@pytest.fixture
def playing():
    return reduce(create_initial_state(), StartMatch(difficulty=DifficultyLevel.CASUAL, started_at=100.0))


def run(state, *actions):
    for action in actions:
        state = reduce(state, action)
    return state


def test_initial_state():
    s = create_initial_state()
    assert s.status is GameStatus.MENU
    assert (s.ammo, s.max_ammo, s.health, s.wave, s.score) == (BASE_AMMO, BASE_AMMO, MAX_HEALTH, 1, 0)


def test_start_match_resets_everything(playing):
    dirty = run(playing, RegisterShot(did_hit=True), EnemyDefeated(points=50), TakeDamage(amount=30, at=101.0))
    fresh = reduce(dirty, StartMatch(difficulty=DifficultyLevel.INSANE, started_at=200.0))
    assert fresh.status is GameStatus.PLAYING
    assert fresh.difficulty is DifficultyLevel.INSANE
    assert (fresh.ammo, fresh.score, fresh.health) == (BASE_AMMO, 0, MAX_HEALTH)
    assert fresh.stats == MatchStats(session_started_at=200.0)


def test_nine_hits(playing):
    s = run(playing, *[RegisterShot(did_hit=True)] * 9)
    assert s.ammo == 1
    assert s.stats.shots_hit == 9
    assert s.stats.shots_fired == 9
    assert s.stats.current_streak == 9
    assert s.stats.best_streak == 9


def test_miss_resets_streak_but_keeps_best(playing):
    s = run(playing, *[RegisterShot(did_hit=True)] * 4, RegisterShot(did_hit=False))
    assert s.stats.current_streak == 0
    assert s.stats.best_streak == 4
    assert accuracy(s.stats) == pytest.approx(80.0)


def test_cannot_fire_empty(playing):
    empty = run(playing, *[RegisterShot(did_hit=False)] * BASE_AMMO)
    assert empty.ammo == 0
    assert reduce(empty, RegisterShot(did_hit=True)) is empty


def test_reload_cycle(playing):
    s = run(playing, RegisterShot(did_hit=True), ReloadStart())
    assert s.is_reloading
    assert reduce(s, RegisterShot(did_hit=True)) is s
    assert reduce(s, ReloadStart()) is s
    done = reduce(s, ReloadComplete())
    assert not done.is_reloading
    assert done.ammo == done.max_ammo


def test_reload_at_full_ammo_is_noop(playing):
    assert reduce(playing, ReloadStart()) is playing
    assert not playing.is_reloading


def test_reload_complete_without_reload_is_noop(playing):
    assert reduce(playing, ReloadComplete()) is playing


def test_pause_and_resume(playing):
    paused = reduce(playing, PauseMatch())
    assert paused.status is GameStatus.PAUSED
    assert reduce(paused, PauseMatch()) is paused
    assert reduce(paused, RegisterShot(did_hit=True)) is paused
    assert reduce(paused, TakeDamage(amount=10, at=1.0)) is paused
    assert reduce(paused, ResumeMatch()).status is GameStatus.PLAYING


@pytest.mark.parametrize(
    "action",
    [
        PauseMatch(),
        ResumeMatch(),
        RegisterShot(did_hit=True),
        ReloadStart(),
        ReloadComplete(),
        TakeDamage(amount=10, at=1.0),
        EnemyDefeated(points=100),
        SetWave(wave=3, at=1.0),
    ],
)
def test_illegal_actions_in_menu_return_same_state(action):
    menu = create_initial_state()
    assert reduce(menu, action) is menu


@pytest.mark.parametrize("amount", [100, 150])
def test_lethal_damage(playing, amount):
    s = reduce(playing, TakeDamage(amount=amount, at=160.0))
    assert s.health == 0
    assert s.status is GameStatus.GAMEOVER
    assert s.is_game_over
    assert s.stats.session_ended_at == 160.0
    assert s.last_damage_time == 160.0


def test_damage_after_game_over_is_noop(playing):
    over = reduce(playing, TakeDamage(amount=100, at=1.0))
    assert reduce(over, TakeDamage(amount=1, at=2.0)) is over
    assert reduce(over, EnemyDefeated(points=10)) is over


def test_partial_and_negative_damage(playing):
    hurt = reduce(playing, TakeDamage(amount=30, at=5.0))
    assert hurt.health == 70
    assert hurt.status is GameStatus.PLAYING
    assert reduce(hurt, TakeDamage(amount=-20, at=6.0)).health == 70


def test_enemy_defeated(playing):
    s = run(playing, EnemyDefeated(points=100), EnemyDefeated(points=250))
    assert s.score == 350
    assert s.stats.enemies_defeated == 2


def test_set_wave_tracks_highest(playing):
    s = run(playing, SetWave(wave=4, at=1.0), SetWave(wave=2, at=2.0))
    assert s.wave == 2
    assert s.stats.highest_wave == 4


def test_set_wave_allowed_after_game_over(playing):
    over = reduce(playing, TakeDamage(amount=100, at=10.0))
    s = reduce(over, SetWave(wave=6, at=12.0))
    assert s.wave == 6
    assert s.stats.highest_wave == 6
    assert s.status is GameStatus.GAMEOVER


def test_return_menu_from_anywhere(playing):
    over = reduce(playing, TakeDamage(amount=100, at=10.0))
    menu = reduce(over, ReturnMenu(difficulty=DifficultyLevel.TACTICAL))
    assert menu == create_initial_state(DifficultyLevel.TACTICAL)


def test_states_are_immutable(playing):
    with pytest.raises(Exception):
        playing.ammo = 3
    assert replace(playing, ammo=3) is not playing
    assert isinstance(playing, GameState)
