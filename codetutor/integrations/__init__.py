"""
External collaborators: the sandboxed Python execution engine.
"""

from .executor import PythonExecutionEngine, EngineInitError, EngineNotReadyError

__all__ = ['PythonExecutionEngine', 'EngineInitError', 'EngineNotReadyError']
