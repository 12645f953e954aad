"""GestureStrike: two-hand webcam gesture controls for an arcade shooter."""

__version__ = "0.1.0"
