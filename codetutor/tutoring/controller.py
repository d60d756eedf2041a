#!/usr/bin/env python3
"""
TutoringController - sequences the user workflows on top of the completion
client, the execution engine and the state store.

Workflows: lesson generation, exercise generation, chat turn and
run-code-then-feedback. Each one catches its own failures and turns them
into a notice; nothing propagates to the caller.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from ..config import Settings
from ..logging_utils import get_logger
from . import prompts
from .state import ExecutionResult, Role, StateKey, StateStore

if TYPE_CHECKING:
    from ..llm import CompletionClient
    from .interfaces import ExecutionEngine, Renderer

logger = get_logger(__name__)

TUTOR_NAME = 'AI Tutor'
USER_NAME = 'You'


class TutoringController:
    """Orchestrates lessons, exercises, chat and code feedback"""

    def __init__(
        self,
        store: StateStore,
        client: 'CompletionClient',
        engine: 'ExecutionEngine',
        renderer: 'Renderer',
        settings: Settings = None,
    ):
        self.store = store
        self.client = client
        self.engine = engine
        self.renderer = renderer
        self.settings = settings or Settings()
        self.initialized = False

    # =========================================================================
    # Bootstrap
    # =========================================================================

    async def initialize(self, topic: str = None, generate_lesson: bool = True) -> bool:
        """
        Start the execution engine, then load the first lesson.

        Returns False if the engine could not start; the caller should not
        go on to accept user actions in that case.
        """
        self.store.set_loading(True, prompts.LOADING_INITIALIZING)
        try:
            await self.engine.initialize()
        except Exception as e:
            logger.error("Failed to initialize Python environment: %s", e)
            self.renderer.show_notice('Initialization Error', str(e))
            return False
        finally:
            self.store.set_loading(False)

        self.store.set_engine_ready(True)

        if generate_lesson:
            await self.generate_lesson(topic)

        self.initialized = True
        return True

    # =========================================================================
    # Lessons & exercises
    # =========================================================================

    async def generate_lesson(self, topic: str = None) -> bool:
        """Generate a lesson and start a fresh conversation around it"""
        topic = topic or self.settings.default_topic

        try:
            lesson = await self.client.generate_lesson(topic)

            self.store.set(StateKey.CURRENT_LESSON, lesson)
            self.renderer.show_course_content(lesson)
            self.renderer.clear_conversation()

            self.store.clear_history()
            self.store.append_turn(Role.MODEL, prompts.WELCOME_MESSAGE)
            self.store.append_turn(Role.MODEL, lesson)

            self.renderer.append_conversation_entry(TUTOR_NAME, prompts.WELCOME_MESSAGE, False)
            return True
        except Exception:
            logger.exception("Failed to generate lesson")
            self.renderer.show_notice('Error', prompts.LESSON_FAILED)
            return False

    async def new_exercise(self) -> bool:
        """Generate a harder exercise on the topic currently shown"""
        topic = self.renderer.current_topic() or self.settings.default_topic
        # Also toggled inside complete(), so observers see loading cleared twice
        self.store.set_loading(True, prompts.LOADING_GENERATING_EXERCISE)

        try:
            exercise = await self.client.generate_exercise(topic)

            self.store.set(StateKey.CURRENT_LESSON, exercise)
            self.renderer.show_course_content(exercise)
            self.renderer.clear_conversation()

            self.store.clear_history()
            self.store.append_turn(Role.MODEL, prompts.NEW_EXERCISE_MESSAGE)

            self.renderer.append_conversation_entry(TUTOR_NAME, prompts.NEW_EXERCISE_MESSAGE, False)
            return True
        except Exception:
            logger.exception("Failed to generate new exercise")
            self.renderer.show_notice('Error', prompts.EXERCISE_FAILED)
            return False
        finally:
            self.store.set_loading(False)

    # =========================================================================
    # Chat
    # =========================================================================

    async def send_chat(self, text: str = None) -> Optional[str]:
        """
        Send a chat message and append the tutor's reply.

        Replies are appended in the order they arrive; two chats sent
        concurrently may land in the history out of send order.
        """
        message = (self.renderer.get_chat_input() if text is None else text).strip()
        if not message:
            return None

        try:
            self.renderer.append_conversation_entry(USER_NAME, message, True)
            self.store.append_turn(Role.USER, message)
            self.renderer.clear_chat_input()

            reply = await self.client.complete(message, loading_message=prompts.LOADING_THINKING)

            self.renderer.append_conversation_entry(TUTOR_NAME, reply, False)
            self.store.append_turn(Role.MODEL, reply)
            return reply
        except Exception:
            logger.exception("Failed to send chat message")
            self.renderer.show_notice('Error', prompts.CHAT_FAILED)
            return None

    # =========================================================================
    # Run code, then ask for feedback
    # =========================================================================

    async def run_code(self, code: str = None, lesson_slot: bool = False) -> Optional[ExecutionResult]:
        """
        Run the student's code and ask the tutor about the result.

        Args:
            code: Code to run (default: the renderer's code buffer)
            lesson_slot: Also record the result in the store's lesson output slot

        Returns:
            The execution result, or None if nothing ran to completion.
        """
        code = self.renderer.get_code() if code is None else code

        if not code.strip():
            self.renderer.update_console_output(prompts.EMPTY_CODE, is_error=True)
            return None

        if not self.engine.ready():
            self.renderer.show_notice('Python environment not ready', prompts.ENGINE_NOT_READY)
            return None

        self.renderer.clear_console_output()

        result: Optional[ExecutionResult] = None
        failure = ''
        self.store.set_loading(True, prompts.LOADING_RUNNING_CODE)
        try:
            result = await self.engine.execute(code)
        except Exception as e:
            logger.exception("Code execution failed")
            failure = str(e) or e.__class__.__name__
        finally:
            self.store.set_loading(False)

        if result is None:
            self.renderer.update_console_output(f"Error: {failure}", is_error=True)
            if lesson_slot:
                self.store.set_execution_error(failure)
            await self.send_feedback(code, error=failure)
            return None

        if result.success:
            self.renderer.update_console_output(result.stdout or prompts.NO_OUTPUT, is_error=False)
            if lesson_slot:
                self.store.set_execution_output(result)
            await self.send_feedback(code, output=result.stdout)
        else:
            error = result.stderr or prompts.EXIT_WITHOUT_MESSAGE
            self.renderer.update_console_output(error, is_error=True)
            if lesson_slot:
                self.store.set_execution_error(error)
            await self.send_feedback(code, error=error)

        return result

    async def send_feedback(self, code: str, output: str = None, error: str = None) -> Optional[str]:
        """Ask the tutor to coach on a run's output or error"""
        feedback_request = prompts.build_feedback_request(output, error)

        try:
            reply = await self.client.get_tutor_feedback(code, feedback_request)

            self.renderer.append_conversation_entry(TUTOR_NAME, reply, False)
            self.store.append_turn(Role.MODEL, reply)
            return reply
        except Exception:
            logger.exception("Failed to get tutor feedback")
            self.renderer.show_notice('Error', prompts.FEEDBACK_FAILED)
            return None

    # =========================================================================
    # Session helpers
    # =========================================================================

    def reset(self) -> None:
        """Clear the conversation, console and code buffer"""
        try:
            self.engine.reset()
            self.store.clear_history()
            self.renderer.clear_conversation()
            self.renderer.clear_console_output()
            self.renderer.set_code('')
        except Exception:
            logger.exception("Failed to reset session")

    def status(self) -> Dict[str, Any]:
        return {
            'initialized': self.initialized,
            'engine_ready': self.engine.ready(),
            'loading': self.store.is_loading,
            'history_length': len(self.store.history()),
            'retry_delay_ms': self.store.retry_delay(),
            'language': self.store.get(StateKey.LANGUAGE),
        }
