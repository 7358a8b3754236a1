"""
Event System for Pathway.

Purpose
-------
Instance-based pub/sub used by services to announce committed outcomes
(points awarded, level ups, config changes). The ServiceContainer owns the
bus; there is no module-level singleton.
"""

from .bus import EventBus
from .router import EventRouter
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventRouter",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
