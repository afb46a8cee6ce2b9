"""
Event system for the countsharp engine.

This package provides the event bus every engine state change is announced on.
"""

from countsharp.events.emitter import EventEmitter, EventBus, EngineEventType

__all__ = ["EventEmitter", "EventBus", "EngineEventType"]
