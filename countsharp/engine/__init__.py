"""
Game engines for the countsharp framework.

This package provides the engine that runs the blackjack round state machine
in real time and announces every change on the event bus.
"""

from countsharp.engine.base import CountsharpEngine
from countsharp.engine.blackjack import BlackjackEngine

__all__ = ["CountsharpEngine", "BlackjackEngine"]
