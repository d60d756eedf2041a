#!/usr/bin/env python3
"""
Tests for the tutoring workflows.
"""

import asyncio
import io
from unittest.mock import AsyncMock, Mock

import httpx
from rich.console import Console

from codetutor.config import Settings
from codetutor.llm import CompletionClient
from codetutor.repl.renderer import ConsoleRenderer
from codetutor.tutoring import (
    ExecutionEngine,
    ExecutionResult,
    Role,
    StateKey,
    StateStore,
    TutoringController,
    TUTOR_NAME,
    USER_NAME,
)
from codetutor.tutoring import prompts


class FakeEngine(ExecutionEngine):
    """Execution engine returning a canned result"""

    def __init__(self, result=None, ready=True, init_error=None):
        self.result = result or ExecutionResult(stdout="3\n", stderr='', success=True)
        self._ready = ready
        self.init_error = init_error
        self.executed = []
        self.reset_calls = 0

    async def initialize(self):
        if self.init_error:
            raise self.init_error
        self._ready = True

    def ready(self):
        return self._ready

    async def execute(self, code):
        self.executed.append(code)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    def reset(self):
        self.reset_calls += 1


def make_controller(engine=None):
    store = StateStore()
    client = Mock()
    client.complete = AsyncMock(return_value="Tutor reply")
    client.generate_lesson = AsyncMock(return_value="# Loops\n\nLesson body")
    client.generate_exercise = AsyncMock(return_value="# Loops\n\nHarder exercise")
    client.get_tutor_feedback = AsyncMock(return_value="Good job!")
    renderer = ConsoleRenderer(Console(file=io.StringIO(), width=100))
    engine = engine or FakeEngine()
    controller = TutoringController(store, client, engine, renderer, Settings())
    return controller, store, client, renderer, engine


class TestInitialize:
    """Tests for controller bootstrap"""

    def test_success_generates_lesson(self):
        controller, store, client, renderer, _ = make_controller(FakeEngine(ready=False))
        assert asyncio.run(controller.initialize("loops")) is True

        assert controller.initialized
        assert store.get(StateKey.ENGINE_READY) is True
        client.generate_lesson.assert_awaited_once_with("loops")
        assert not store.is_loading

    def test_skip_lesson(self):
        controller, _, client, _, _ = make_controller()
        assert asyncio.run(controller.initialize(generate_lesson=False)) is True
        client.generate_lesson.assert_not_awaited()

    def test_engine_failure(self):
        engine = FakeEngine(ready=False, init_error=RuntimeError("no interpreter"))
        controller, store, client, renderer, _ = make_controller(engine)

        assert asyncio.run(controller.initialize()) is False
        assert not controller.initialized
        assert store.get(StateKey.ENGINE_READY) is False
        assert not store.is_loading
        client.generate_lesson.assert_not_awaited()
        assert 'Initialization Error' in renderer.console.file.getvalue()


class TestLessons:
    """Tests for lesson and exercise generation"""

    def test_lesson_seeds_history(self):
        controller, store, _, renderer, _ = make_controller()
        store.append_turn(Role.USER, "old question")

        assert asyncio.run(controller.generate_lesson()) is True

        history = store.history()
        assert [t.role for t in history] == [Role.MODEL, Role.MODEL]
        assert history[0].text == prompts.WELCOME_MESSAGE
        assert history[1].text == "# Loops\n\nLesson body"
        assert store.get(StateKey.CURRENT_LESSON) == "# Loops\n\nLesson body"
        assert renderer.conversation == [(TUTOR_NAME, prompts.WELCOME_MESSAGE, False)]
        assert renderer.current_topic() == "Loops"

    def test_lesson_uses_default_topic(self):
        controller, _, client, _, _ = make_controller()
        asyncio.run(controller.generate_lesson())
        client.generate_lesson.assert_awaited_once_with(Settings().default_topic)

    def test_lesson_failure_keeps_state(self):
        controller, store, client, renderer, _ = make_controller()
        client.generate_lesson.side_effect = RuntimeError("down")
        store.append_turn(Role.USER, "keep me")

        assert asyncio.run(controller.generate_lesson()) is False
        assert [t.text for t in store.history()] == ["keep me"]
        assert prompts.LESSON_FAILED in renderer.console.file.getvalue()

    def test_new_exercise_mid_chat_reseeds_history(self):
        controller, store, client, renderer, _ = make_controller()
        asyncio.run(controller.generate_lesson())
        for i in range(3):
            store.append_turn(Role.USER, f"question {i}")
            store.append_turn(Role.MODEL, f"answer {i}")

        assert asyncio.run(controller.new_exercise()) is True

        history = store.history()
        assert len(history) == 1
        assert history[0].role == Role.MODEL
        assert history[0].text == prompts.NEW_EXERCISE_MESSAGE
        client.generate_exercise.assert_awaited_once_with("Loops")
        assert renderer.conversation == [(TUTOR_NAME, prompts.NEW_EXERCISE_MESSAGE, False)]
        assert not store.is_loading

    def test_new_exercise_without_heading_uses_default_topic(self):
        controller, _, client, _, _ = make_controller()
        asyncio.run(controller.new_exercise())
        client.generate_exercise.assert_awaited_once_with(Settings().default_topic)

    def test_new_exercise_failure(self):
        controller, store, client, renderer, _ = make_controller()
        client.generate_exercise.side_effect = RuntimeError("down")

        assert asyncio.run(controller.new_exercise()) is False
        assert not store.is_loading
        assert prompts.EXERCISE_FAILED in renderer.console.file.getvalue()


class TestChat:
    """Tests for the chat workflow"""

    def test_empty_message_is_ignored(self):
        controller, store, client, renderer, _ = make_controller()
        assert asyncio.run(controller.send_chat("   ")) is None
        client.complete.assert_not_awaited()
        assert store.history() == []
        assert renderer.conversation == []

    def test_chat_turn(self):
        controller, store, client, renderer, _ = make_controller()
        assert asyncio.run(controller.send_chat("  What is a loop?  ")) == "Tutor reply"

        assert [(t.role, t.text) for t in store.history()] == [
            (Role.USER, "What is a loop?"),
            (Role.MODEL, "Tutor reply"),
        ]
        assert renderer.conversation == [
            (USER_NAME, "What is a loop?", True),
            (TUTOR_NAME, "Tutor reply", False),
        ]
        client.complete.assert_awaited_once()
        assert client.complete.await_args.args[0] == "What is a loop?"

    def test_chat_reads_input_buffer(self):
        controller, _, client, renderer, _ = make_controller()
        renderer.chat_input = "hello"
        asyncio.run(controller.send_chat())
        assert client.complete.await_args.args[0] == "hello"
        assert renderer.chat_input == ''

    def test_chat_failure_shows_notice(self):
        controller, store, client, renderer, _ = make_controller()
        client.complete.side_effect = RuntimeError("down")

        assert asyncio.run(controller.send_chat("hi")) is None
        assert [t.role for t in store.history()] == [Role.USER]
        assert prompts.CHAT_FAILED in renderer.console.file.getvalue()


class TestRunCode:
    """Tests for run-code-then-feedback"""

    def test_empty_code_never_runs(self):
        controller, _, client, renderer, engine = make_controller()
        assert asyncio.run(controller.run_code("  \n ")) is None

        assert engine.executed == []
        assert renderer.console_output == prompts.EMPTY_CODE
        assert renderer.console_is_error
        client.get_tutor_feedback.assert_not_awaited()

    def test_engine_not_ready(self):
        controller, store, client, renderer, engine = make_controller(FakeEngine(ready=False))
        seen = []
        store.subscribe(StateKey.EXECUTION_OUTPUT, seen.append)
        store.subscribe(StateKey.EXECUTION_ERROR, seen.append)

        assert asyncio.run(controller.run_code("print(1)", lesson_slot=True)) is None
        assert engine.executed == []
        assert seen == []
        assert 'Python environment not ready' in renderer.console.file.getvalue()
        client.get_tutor_feedback.assert_not_awaited()

    def test_success_asks_for_output_feedback(self):
        controller, store, client, renderer, _ = make_controller()
        result = asyncio.run(controller.run_code("print(1 + 2)"))

        assert result.success
        assert renderer.console_output == "3\n"
        assert not renderer.console_is_error
        code, request = client.get_tutor_feedback.await_args.args
        assert code == "print(1 + 2)"
        assert request == prompts.build_feedback_request(output="3\n")
        assert store.history()[-1].text == "Good job!"
        assert renderer.conversation[-1] == (TUTOR_NAME, "Good job!", False)
        assert not store.is_loading

    def test_success_without_output(self):
        engine = FakeEngine(ExecutionResult(stdout='', stderr='', success=True))
        controller, _, _, renderer, _ = make_controller(engine)
        asyncio.run(controller.run_code("x = 1"))
        assert renderer.console_output == prompts.NO_OUTPUT

    def test_error_asks_for_error_feedback(self):
        engine = FakeEngine(ExecutionResult(stdout='', stderr="NameError: x", success=False))
        controller, _, client, renderer, _ = make_controller(engine)
        asyncio.run(controller.run_code("print(x)"))

        assert renderer.console_output == "NameError: x"
        assert renderer.console_is_error
        request = client.get_tutor_feedback.await_args.args[1]
        assert request == 'It resulted in an error: "NameError: x"'

    def test_uses_code_buffer(self):
        controller, _, _, renderer, engine = make_controller()
        renderer.set_code("print('buffer')")
        asyncio.run(controller.run_code())
        assert engine.executed == ["print('buffer')"]

    def test_engine_exception(self):
        engine = FakeEngine(RuntimeError("sandbox crashed"))
        controller, store, client, renderer, _ = make_controller(engine)

        assert asyncio.run(controller.run_code("print(1)", lesson_slot=True)) is None
        assert renderer.console_output == "Error: sandbox crashed"
        assert store.get(StateKey.EXECUTION_ERROR) == "sandbox crashed"
        assert not store.is_loading
        client.get_tutor_feedback.assert_awaited_once()

    def test_lesson_slot_records_result(self):
        controller, store, _, _, engine = make_controller()
        asyncio.run(controller.run_code("print(1 + 2)", lesson_slot=True))
        assert store.get(StateKey.EXECUTION_OUTPUT) == engine.result
        assert store.get(StateKey.EXECUTION_ERROR) is None

    def test_slot_untouched_by_default(self):
        controller, store, _, _, _ = make_controller()
        asyncio.run(controller.run_code("print(1 + 2)"))
        assert store.get(StateKey.EXECUTION_OUTPUT) is None

    def test_feedback_failure_shows_notice(self):
        controller, store, client, renderer, _ = make_controller()
        client.get_tutor_feedback.side_effect = RuntimeError("down")

        result = asyncio.run(controller.run_code("print(1 + 2)"))
        assert result.success
        assert prompts.FEEDBACK_FAILED in renderer.console.file.getvalue()
        assert store.history() == []


class TestSessionHelpers:

    def test_reset(self):
        controller, store, _, renderer, engine = make_controller()
        asyncio.run(controller.send_chat("hi"))
        renderer.set_code("print(1)")
        renderer.update_console_output("1")

        controller.reset()

        assert store.history() == []
        assert renderer.conversation == []
        assert renderer.console_output == ''
        assert renderer.get_code() == ''
        assert engine.reset_calls == 1

    def test_status(self):
        controller, store, _, _, _ = make_controller()
        store.append_turn(Role.USER, "hi")
        status = controller.status()
        assert status['history_length'] == 1
        assert status['engine_ready'] is True
        assert status['retry_delay_ms'] == 1000
        assert status['language'] == 'en'


class TestWithCompletionClient:
    """Workflows driven through a real CompletionClient on a fake endpoint"""

    def make(self, status):
        settings = Settings(api_key='test-key', max_retries=2)
        store = StateStore.from_settings(settings)

        def service(request):
            return httpx.Response(status, json={'error': {'code': status}})

        async def no_wait(seconds):
            pass

        http = httpx.AsyncClient(transport=httpx.MockTransport(service))
        client = CompletionClient(store, settings, http_client=http, sleep=no_wait)
        renderer = ConsoleRenderer(Console(file=io.StringIO(), width=100))
        controller = TutoringController(store, client, FakeEngine(), renderer, settings)
        return controller, store, renderer

    def test_rate_limit_apology_is_a_normal_reply(self):
        controller, store, renderer = self.make(429)

        assert asyncio.run(controller.send_chat("hi")) == prompts.DEFAULT_ERROR
        assert [(t.role, t.text) for t in store.history()] == [
            (Role.USER, "hi"),
            (Role.MODEL, prompts.DEFAULT_ERROR),
        ]
        assert renderer.conversation[-1] == (TUTOR_NAME, prompts.DEFAULT_ERROR, False)
        assert not store.is_loading

    def test_connection_error_becomes_notice(self):
        controller, store, renderer = self.make(500)

        assert asyncio.run(controller.send_chat("hi")) is None
        assert [t.role for t in store.history()] == [Role.USER]
        assert prompts.CHAT_FAILED in renderer.console.file.getvalue()
        assert not store.is_loading
