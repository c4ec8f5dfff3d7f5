"""Duel domain services: lobbies, registry, scoring and timers.

This package holds the lobby orchestration logic. Socket handlers and HTTP
routes call into it; it never imports Flask request state, so it can be driven
directly from tests with a manual scheduler and recording endpoints.
"""

from .lobby import Lobby, LobbySettings
from .registry import LobbyRegistry
from .scheduler import Clock, ScheduledCall, TaskScheduler

__all__ = [
    'Clock',
    'Lobby',
    'LobbyRegistry',
    'LobbySettings',
    'ScheduledCall',
    'TaskScheduler',
]
