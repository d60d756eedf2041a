#!/usr/bin/env python3
"""
Tutoring core: the reactive state store and the workflow controller.

Workflows:
- Lesson: generate lesson content and start a fresh conversation
- Exercise: generate a harder exercise on the current topic
- Chat: send a message and append the tutor's reply
- Run code: execute the student's code, then ask for feedback
"""

from .state import (
    Role,
    StateKey,
    Turn,
    LoadingStatus,
    ExecutionResult,
    RetryState,
    StateStore,
)
from .interfaces import ExecutionEngine, Renderer
from .controller import TutoringController, TUTOR_NAME, USER_NAME

__all__ = [
    'Role',
    'StateKey',
    'Turn',
    'LoadingStatus',
    'ExecutionResult',
    'RetryState',
    'StateStore',
    'ExecutionEngine',
    'Renderer',
    'TutoringController',
    'TUTOR_NAME',
    'USER_NAME',
]
