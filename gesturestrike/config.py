"""
Game constants, feedback patterns, difficulty tiers and backend settings.

Everything tunable that is not part of a player's calibration profile lives
here so the reducer, the orchestration layer and the backend agree on the
same numbers.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


# --------- Match constants ---------

BASE_AMMO = 10
MAX_HEALTH = 100

# Seconds between RELOAD_START and the scheduled RELOAD_COMPLETE
RELOAD_DURATION_S = 1.5

# Footstep cadence while the movement hand is not in STOP
FOOTSTEP_INTERVAL_S = 0.45
FOOTSTEP_METAL_CYCLE = 16
FOOTSTEP_METAL_AFTER = 12

# Re-fire cadence while the trigger gesture is held
FIRE_INTERVAL_S = 0.25

SESSION_HISTORY_LIMIT = 20
RECENT_SESSION_WINDOW = 5

# Vibration style on/off patterns in milliseconds
HAPTIC_PATTERNS: Dict[str, List[int]] = {
    "FIRE": [45],
    "RELOAD": [50, 80, 50, 150, 100],
    "DAMAGE_CRITICAL": [200, 100, 200, 100, 300],
    "WALK_CONCRETE": [15],
    "WALK_METAL": [10, 25, 10],
}


class DifficultyLevel(str, Enum):
    """Difficulty tiers, lowest first."""
    EASY = "EASY"
    CASUAL = "CASUAL"
    TACTICAL = "TACTICAL"
    INSANE = "INSANE"


DIFFICULTY_LABELS: Dict[DifficultyLevel, str] = {
    DifficultyLevel.EASY: "Recruit",
    DifficultyLevel.CASUAL: "Casual",
    DifficultyLevel.TACTICAL: "Tactical",
    DifficultyLevel.INSANE: "Insane",
}


# --------- Backend settings ---------

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787
DEFAULT_DB_PATH = "gesturestrike.db"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    """
    Backend runtime settings.

    Attributes:
        host: Interface the Flask server binds to
        port: TCP port
        db_path: SQLite database file
        log_level: Name of the root logging level
    """
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    db_path: str = DEFAULT_DB_PATH
    log_level: str = DEFAULT_LOG_LEVEL


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", key, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive, using %d", key, raw, default)
        return default
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Settings with defaults filled in for anything missing or invalid
    """
    env = os.environ if env is None else env
    return Settings(
        host=env.get("GESTURESTRIKE_HOST", DEFAULT_HOST) or DEFAULT_HOST,
        port=_env_int(env, "GESTURESTRIKE_PORT", DEFAULT_PORT),
        db_path=env.get("GESTURESTRIKE_DB", DEFAULT_DB_PATH) or DEFAULT_DB_PATH,
        log_level=(env.get("GESTURESTRIKE_LOG_LEVEL", DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper(),
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
