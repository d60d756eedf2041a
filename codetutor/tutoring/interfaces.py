#!/usr/bin/env python3
"""
Interfaces the tutoring controller drives: the execution engine that runs
student code and the renderer that owns every presentation region.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from .state import ExecutionResult


class ExecutionEngine(ABC):
    """Sandboxed interpreter for student code"""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the environment; raise on failure"""
        pass

    @abstractmethod
    def ready(self) -> bool:
        pass

    @abstractmethod
    async def execute(self, code: str) -> ExecutionResult:
        """Run code and return captured stdout/stderr/success"""
        pass

    @abstractmethod
    def reset(self) -> None:
        pass


class Renderer(ABC):
    """Presentation surface: course content, conversation, code and console regions"""

    @abstractmethod
    def render_markup(self, text: str) -> Any:
        """Turn lesson/tutor markdown into safe displayable markup"""
        pass

    @abstractmethod
    def show_notice(self, title: str, message: str) -> None:
        pass

    @abstractmethod
    def show_course_content(self, text: str) -> None:
        pass

    @abstractmethod
    def current_topic(self) -> Optional[str]:
        """Heading of the course content currently shown, if any"""
        pass

    @abstractmethod
    def append_conversation_entry(self, sender: str, text: str, is_user: bool) -> None:
        pass

    @abstractmethod
    def clear_conversation(self) -> None:
        pass

    @abstractmethod
    def get_code(self) -> str:
        pass

    @abstractmethod
    def set_code(self, code: str) -> None:
        pass

    @abstractmethod
    def get_chat_input(self) -> str:
        pass

    @abstractmethod
    def clear_chat_input(self) -> None:
        pass

    @abstractmethod
    def update_console_output(self, text: str, is_error: bool = False) -> None:
        pass

    def clear_console_output(self) -> None:
        self.update_console_output('')
