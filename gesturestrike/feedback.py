"""
Feedback sinks for haptic cues.

Desktop Python has no vibration API, so cues are rendered as short sounds
through pygame's mixer. Each cue name matches a key of HAPTIC_PATTERNS; the
pattern itself is passed along so a sink driving real hardware (a gamepad
rumble, a phone bridge) can use the on/off timings directly.
"""

import logging
import os
from typing import Dict, List, Optional

import pygame

from .config import HAPTIC_PATTERNS

logger = logging.getLogger(__name__)

DEFAULT_SOUNDS: Dict[str, List[str]] = {
    "FIRE": ["./sounds/bang.mp3"],
    "RELOAD": ["./sounds/reload.mp3"],
    "DAMAGE_CRITICAL": ["./sounds/hit.mp3"],
    "WALK_CONCRETE": ["./sounds/step_concrete.mp3"],
    "WALK_METAL": ["./sounds/step_metal.mp3"],
}


class Feedback:
    """Base sink: receives cue names and their on/off patterns."""

    def pulse(self, cue: str, pattern: List[int]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class NullFeedback(Feedback):
    def pulse(self, cue: str, pattern: List[int]) -> None:
        logger.debug("Feedback %s %s", cue, pattern)


class PygameFeedback(Feedback):
    """
    Plays one or more sound files per cue through pygame.mixer.

    Attributes:
        sounds: Cue name -> list of sound file paths (all are played)
        volume: Playback volume (0.0 to 1.0)
    """

    def __init__(self, sounds: Optional[Dict[str, List[str]]] = None, volume: float = 0.6):
        self.sounds = dict(DEFAULT_SOUNDS if sounds is None else sounds)
        self.volume = max(0.0, min(1.0, volume))
        self._cache: Dict[str, pygame.mixer.Sound] = {}
        self._ready = False
        try:
            pygame.mixer.init()
            self._ready = True
        except pygame.error as ex:
            logger.warning("Audio feedback disabled, mixer failed to start: %s", ex)

    def _load_sound(self, path: str) -> Optional[pygame.mixer.Sound]:
        if path in self._cache:
            return self._cache[path]
        if not os.path.exists(path):
            logger.warning("Sound file not found: %s", path)
            return None
        try:
            snd = pygame.mixer.Sound(path)
        except pygame.error as ex:
            logger.warning("Failed to load sound %s: %s", path, ex)
            return None
        snd.set_volume(self.volume)
        self._cache[path] = snd
        return snd

    def pulse(self, cue: str, pattern: List[int]) -> None:
        if not self._ready:
            return
        for path in self.sounds.get(cue, []):
            snd = self._load_sound(path)
            if snd is None:
                continue
            try:
                snd.play()
            except pygame.error as ex:
                logger.warning("Failed to play sound %s: %s", path, ex)

    def close(self) -> None:
        if self._ready:
            pygame.mixer.quit()
            self._ready = False


def pattern_for(cue: str) -> List[int]:
    return list(HAPTIC_PATTERNS.get(cue, []))
