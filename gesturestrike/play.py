"""
Webcam runner for GestureStrike.

    python -m gesturestrike.play --hit-rate 0.6

Pipeline per frame:
    camera thread -> latest DetectedFrame -> GestureEngine -> HandStateSmoother -> MatchSession

There is no 3D renderer here: a fire intent counts as a hit with probability
--hit-rate, every hit defeats one enemy, and the wave rises every
KILLS_PER_WAVE kills.
"""

import argparse
import logging
import queue
import random
import sys
from typing import List, Optional

import cv2
import mediapipe as mp

from .calibration import CalibrationStore, calibrate_movement_center
from .camera import DetectedFrame, start_detection
from .config import DEFAULT_LOG_LEVEL, DIFFICULTY_LABELS, DifficultyLevel, configure_logging
from .feedback import PygameFeedback
from .game_state import GameStatus, accuracy
from .gesture_engine import ROLE_SPLIT_X, DetectedHand, GestureEngine, HandRole, assign_role, mirrored_side
from .session import FIRE_INTENT, MatchSession
from .session_analytics import SessionHistoryStore
from .smoothing import HandStateSmoother

logger = logging.getLogger(__name__)

WINDOW_NAME = "GestureStrike"
POINTS_PER_KILL = 100
KILLS_PER_WAVE = 5
DEBUG_DAMAGE = 25

HELP_TEXT = [
    "GESTURESTRIKE CONTROLS",
    "Hand on YOUR RIGHT of the preview: movement",
    "  fist = stop, move wrist up/down/left/right of center to walk",
    "Hand on YOUR LEFT of the preview: combat",
    "  open hand = reload",
    "  index out + thumb up + ring/pinky curled = aim",
    "  add middle finger = iron sights",
    "  curl index toward its knuckle = fire (hold to keep firing)",
    "Keys: s start  p pause  c calibrate center  m menu",
    "      d take damage  h help  q quit",
]

GREEN = (0, 255, 0)
YELLOW = (0, 255, 255)
RED = (0, 0, 255)
WHITE = (255, 255, 255)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play GestureStrike with your webcam.")
    parser.add_argument("--camera", type=int, default=0, help="OpenCV camera index")
    parser.add_argument("--history", default="session_history.json", help="Session history JSON file")
    parser.add_argument("--calibration", default="calibration.json", help="Calibration profile JSON file")
    parser.add_argument(
        "--difficulty",
        choices=[d.value for d in DifficultyLevel],
        default=None,
        help="Difficulty for new matches (default: recommended from history)",
    )
    parser.add_argument("--hit-rate", type=float, default=0.6, help="Chance that a shot hits (0..1)")
    parser.add_argument("--mute", action="store_true", help="Disable sound cues")
    parser.add_argument("--log-level", default=DEFAULT_LOG_LEVEL, help="Logging level")
    args = parser.parse_args(argv)
    if not 0.0 <= args.hit_rate <= 1.0:
        parser.error("--hit-rate must be between 0 and 1")
    return args


# --------- drawing ---------

def _draw_hand(frame, hand: DetectedHand) -> None:
    # Landmarks are in camera space, the preview is mirrored
    h, w = frame.shape[:2]
    points = [(int((1.0 - p.x) * w), int(p.y * h)) for p in hand.landmarks]
    role = assign_role(hand.landmarks)
    color = GREEN if role is HandRole.COMBAT else YELLOW
    for a, b in mp.solutions.hands.HAND_CONNECTIONS:
        if a < len(points) and b < len(points):
            cv2.line(frame, points[a], points[b], color, 2, cv2.LINE_AA)
    for pt in points:
        cv2.circle(frame, pt, 3, WHITE, -1, cv2.LINE_AA)
    wx, wy = points[0]
    _text(frame, f"{mirrored_side(hand.handedness)} hand: {role.value}", (wx - 40, wy + 25), color, 0.5, 1)


def _text(frame, text: str, org, color=WHITE, scale: float = 0.6, thickness: int = 2) -> None:
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)


def draw_hud(frame, session: MatchSession, message: str = "", show_help: bool = False) -> None:
    h, w = frame.shape[:2]
    split = int((1.0 - ROLE_SPLIT_X) * w)
    cv2.line(frame, (split, 0), (split, h), (80, 80, 80), 1)

    state = session.state
    hs = session.hand_state
    _text(frame, f"{state.status.value}  {DIFFICULTY_LABELS[state.difficulty]}", (10, 25), YELLOW)
    _text(frame, f"Score {state.score}  Wave {state.wave}  HP {state.health}", (10, 50))
    ammo = "RELOADING" if state.is_reloading else f"Ammo {state.ammo}/{state.max_ammo}"
    _text(frame, f"{ammo}  Acc {accuracy(state.stats):.1f}%", (10, 75), RED if state.ammo == 0 else WHITE)
    _text(frame, f"Move {hs.movement.value}  Combat {hs.combat.value}", (10, h - 15), GREEN)

    if state.status is GameStatus.MENU:
        insights = session.insights
        _text(frame, f"Press S to start ({DIFFICULTY_LABELS[insights.recommended_difficulty]} recommended)", (10, 110))
        if insights.total_sessions:
            _text(
                frame,
                f"Sessions {insights.total_sessions}  Avg acc {insights.average_accuracy:.1f}%  Best {insights.best_score}",
                (10, 135),
            )
    elif state.status is GameStatus.GAMEOVER:
        _text(frame, "GAME OVER - S to restart, M for menu", (10, 110), RED, 0.8)

    if message:
        _text(frame, message, (10, 160), RED)

    if show_help:
        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (w, h), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)
        for i, line in enumerate(HELP_TEXT):
            _text(frame, line, (20, 40 + i * 26), WHITE, 0.55, 1)


# --------- game loop ---------

class Runner:
    """
    Owns the session and applies one camera frame at a time.

    Attributes:
        session: The match session
        engine: Gesture classifier
        smoother: Temporal debounce in front of the session
        hit_rate: Probability a shot hits
    """

    def __init__(
        self,
        session: MatchSession,
        engine: GestureEngine,
        smoother: HandStateSmoother,
        calibration_store: Optional[CalibrationStore] = None,
        hit_rate: float = 0.6,
        difficulty: Optional[DifficultyLevel] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.engine = engine
        self.smoother = smoother
        self.calibration_store = calibration_store
        self.hit_rate = hit_rate
        self.difficulty = difficulty
        self.rng = rng or random.Random()
        self.message = ""
        self._last_hands: List[DetectedHand] = []

    def on_frame(self, frame: DetectedFrame) -> None:
        self._last_hands = frame.hands
        stable = self.smoother.update(self.engine.process(frame.hands))
        if stable is not None:
            self._resolve(self.session.handle_hand_state(stable))
        self.tick()

    def tick(self) -> None:
        """Advance timers, resolving any shots fired while the trigger is held."""
        self._resolve(self.session.tick())

    def _resolve(self, intents: List[str]) -> None:
        for intent in intents:
            if intent == FIRE_INTENT:
                self._resolve_shot()

    def _resolve_shot(self) -> None:
        hit = self.rng.random() < self.hit_rate
        state = self.session.register_shot(hit)
        if hit and state.status is GameStatus.PLAYING:
            state = self.session.enemy_defeated(POINTS_PER_KILL)
            wave = 1 + state.stats.enemies_defeated // KILLS_PER_WAVE
            if wave != state.wave:
                self.session.set_wave(wave)

    def calibrate(self) -> None:
        hand = self.engine.movement_hand(self._last_hands)
        if hand is None:
            self.message = "Show your movement hand to calibrate"
            return
        profile = calibrate_movement_center(hand.landmarks, self.engine.profile)
        self.engine.set_profile(profile)
        self.smoother.configure(profile.smoothing_frames)
        if self.calibration_store is not None:
            self.calibration_store.save(profile)
        self.message = f"Center set to ({profile.movement_center_x:.2f}, {profile.movement_center_y:.2f})"

    def on_key(self, key: int) -> bool:
        """Handle a key press. Returns False when the player quits."""
        if key == ord('q'):
            return False
        if key == ord('s'):
            self.message = ""
            self.smoother.reset()
            self.session.start(self.difficulty)
        elif key == ord('p'):
            self.session.pause_toggle()
        elif key == ord('m'):
            self.session.return_menu()
        elif key == ord('c'):
            self.calibrate()
        elif key == ord('d'):
            self.session.take_damage(DEBUG_DAMAGE)
        return True


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    calibration_store = CalibrationStore(args.calibration)
    profile = calibration_store.load()
    feedback = None if args.mute else PygameFeedback()
    session = MatchSession(history_store=SessionHistoryStore(args.history), feedback=feedback)
    runner = Runner(
        session,
        GestureEngine(profile),
        HandStateSmoother(profile.smoothing_frames),
        calibration_store=calibration_store,
        hit_rate=args.hit_rate,
        difficulty=DifficultyLevel(args.difficulty) if args.difficulty else None,
    )

    frames: "queue.Queue[DetectedFrame]" = queue.Queue(maxsize=1)
    errors: "queue.Queue[str]" = queue.Queue()

    def on_frame(frame: DetectedFrame) -> None:
        # Keep only the newest frame
        try:
            frames.get_nowait()
        except queue.Empty:
            pass
        frames.put_nowait(frame)

    cancel = start_detection(on_frame, errors.put, camera_index=args.camera)
    show_help = False
    camera_message = ""
    last_image = None
    logger.info("GestureStrike running, press h for help and q to quit")

    try:
        while True:
            try:
                frame = frames.get(timeout=0.05)
            except queue.Empty:
                frame = None
            if frame is not None:
                runner.on_frame(frame)
                last_image = frame.image
                for hand in frame.hands:
                    _draw_hand(last_image, hand)
            else:
                runner.tick()

            try:
                camera_message = errors.get_nowait()
            except queue.Empty:
                pass

            if last_image is not None:
                image = last_image.copy()
                draw_hud(image, session, camera_message or runner.message, show_help)
                cv2.imshow(WINDOW_NAME, image)
            elif camera_message:
                print(camera_message, file=sys.stderr)
                return 1

            key = cv2.waitKey(1) & 0xFF
            if key == ord('h'):
                show_help = not show_help
            elif key != 0xFF and not runner.on_key(key):
                break
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        cancel()
        session.shutdown()
        cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    sys.exit(main())
