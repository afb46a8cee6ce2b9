"""
Immutable state management for the countsharp engine.

This package provides the immutable round state and the pure transition
functions that drive the round state machine.
"""

from countsharp.state.models import RoundStage, RoundState

from countsharp.state.transitions import (
    IDLE_STAGES,
    INITIAL_DEAL_ORDER,
    StateTransitionEngine,
)

__all__ = [
    "RoundStage",
    "RoundState",
    "StateTransitionEngine",
    "INITIAL_DEAL_ORDER",
    "IDLE_STAGES",
]
