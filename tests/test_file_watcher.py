#!/usr/bin/env python3
"""
Tests for run-on-save file watching.
"""

import asyncio
from unittest.mock import Mock

import pytest

from codetutor.tutoring.file_watcher import CodeFileHandler, CodeFileWatcher


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestCodeFileHandler:
    """Tests for debounce and change detection"""

    def test_reports_change(self, tmp_path):
        path = tmp_path / 'exercise.py'
        path.write_text("print(1)")
        seen = []
        handler = CodeFileHandler(str(path), seen.append, clock=FakeClock())

        assert handler.handle_change() is True
        assert seen == ["print(1)"]

    def test_debounce(self, tmp_path):
        path = tmp_path / 'exercise.py'
        path.write_text("print(1)")
        clock = FakeClock()
        seen = []
        handler = CodeFileHandler(str(path), seen.append, clock=clock)

        handler.handle_change()
        path.write_text("print(2)")
        clock.now += 0.5
        assert handler.handle_change() is False

        clock.now += 1.0
        assert handler.handle_change() is True
        assert seen == ["print(1)", "print(2)"]

    def test_unchanged_content_is_skipped(self, tmp_path):
        path = tmp_path / 'exercise.py'
        path.write_text("print(1)")
        clock = FakeClock()
        seen = []
        handler = CodeFileHandler(str(path), seen.append, clock=clock)

        handler.handle_change()
        clock.now += 5
        assert handler.handle_change() is False
        assert seen == ["print(1)"]

    def test_missing_file(self, tmp_path):
        seen = []
        handler = CodeFileHandler(str(tmp_path / 'gone.py'), seen.append, clock=FakeClock())
        assert handler.handle_change() is False
        assert seen == []

    def test_ignores_other_files(self, tmp_path):
        path = tmp_path / 'exercise.py'
        path.write_text("print(1)")
        seen = []
        handler = CodeFileHandler(str(path), seen.append, clock=FakeClock())

        event = Mock()
        event.src_path = str(tmp_path / 'other.py')
        handler.on_moved(event)
        assert seen == []


class TestCodeFileWatcher:
    """Tests for CodeFileWatcher"""

    def test_start_missing_file(self, tmp_path):
        controller = Mock()
        watcher = CodeFileWatcher(str(tmp_path / 'missing.py'), controller, asyncio.new_event_loop())
        with pytest.raises(FileNotFoundError):
            watcher.start()
        assert not watcher.is_running

    def test_start_and_stop(self, tmp_path):
        path = tmp_path / 'exercise.py'
        path.write_text("print(1)")
        loop = asyncio.new_event_loop()
        try:
            watcher = CodeFileWatcher(str(path), Mock(), loop)
            watcher.start()
            assert watcher.is_running
            watcher.stop()
            assert not watcher.is_running
        finally:
            loop.close()

    def test_change_runs_code_on_loop(self, tmp_path):
        path = tmp_path / 'exercise.py'
        path.write_text("print('saved')")
        ran = []

        class FakeController:
            renderer = Mock()

            async def run_code(self, code):
                ran.append(code)

        async def go():
            watcher = CodeFileWatcher(str(path), FakeController(), asyncio.get_running_loop())
            # Called from a worker thread, like watchdog does
            await asyncio.get_running_loop().run_in_executor(None, watcher.handler.handle_change)
            await asyncio.sleep(0)
            await watcher.task

        asyncio.run(go())
        assert ran == ["print('saved')"]

    def test_save_during_run_is_queued(self, tmp_path):
        """A save made while the previous run is still going runs afterwards"""
        path = tmp_path / 'exercise.py'
        path.write_text("print(1)")
        clock = FakeClock()
        ran = []

        async def go():
            gate = asyncio.Event()

            class SlowController:
                renderer = Mock()

                async def run_code(self, code):
                    ran.append(code)
                    await gate.wait()

            loop = asyncio.get_running_loop()
            watcher = CodeFileWatcher(str(path), SlowController(), loop)
            watcher.handler.clock = clock

            await loop.run_in_executor(None, watcher.handler.handle_change)
            await asyncio.sleep(0)
            assert ran == ["print(1)"]

            path.write_text("print(2)")
            clock.now += 5
            await loop.run_in_executor(None, watcher.handler.handle_change)
            await asyncio.sleep(0)
            assert ran == ["print(1)"]

            gate.set()
            await watcher.task

            # Saving the same content again is still a no-op
            clock.now += 5
            fired = await loop.run_in_executor(None, watcher.handler.handle_change)
            return fired

        fired = asyncio.run(go())
        assert ran == ["print(1)", "print(2)"]
        assert fired is False

    def test_only_newest_queued_save_runs(self):
        ran = []

        async def go():
            gate = asyncio.Event()

            class SlowController:
                renderer = Mock()

                async def run_code(self, code):
                    ran.append(code)
                    await gate.wait()

            watcher = CodeFileWatcher('exercise.py', SlowController(), asyncio.get_running_loop())
            watcher.submit("v1")
            await asyncio.sleep(0)
            watcher.submit("v2")
            watcher.submit("v3")
            gate.set()
            await watcher.task

        asyncio.run(go())
        assert ran == ["v1", "v3"]

    def test_stop_drops_queued_save(self):
        ran = []

        async def go():
            gate = asyncio.Event()

            class SlowController:
                renderer = Mock()

                async def run_code(self, code):
                    ran.append(code)
                    await gate.wait()

            watcher = CodeFileWatcher('exercise.py', SlowController(), asyncio.get_running_loop())
            watcher.submit("v1")
            await asyncio.sleep(0)
            watcher.submit("v2")
            watcher.stop()
            await asyncio.gather(watcher.task, return_exceptions=True)

        asyncio.run(go())
        assert ran == ["v1"]
