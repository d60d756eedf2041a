"""
Terminal front end: the interactive REPL and its console renderer.
"""

from .renderer import ConsoleRenderer
from .session import TutorREPL

__all__ = ['ConsoleRenderer', 'TutorREPL']
