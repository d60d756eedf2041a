#!/usr/bin/env python3
"""
File watcher for run-on-save.
Monitors a code file and runs it through the run-code-then-feedback
workflow every time the student saves it.
"""

import asyncio
import os
import time
from typing import Callable, Optional, TYPE_CHECKING

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileModifiedEvent, FileMovedEvent

from ..logging_utils import get_logger

if TYPE_CHECKING:
    from .controller import TutoringController

logger = get_logger(__name__)


class CodeFileHandler(FileSystemEventHandler):
    """Turns save events on one file into debounced change callbacks"""

    DEBOUNCE_SECONDS = 1.0

    def __init__(
        self,
        filepath: str,
        on_change: Callable[[str], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.filepath = os.path.abspath(filepath)
        self.on_change = on_change
        self.clock = clock
        self.last_modified = float('-inf')
        self.last_content: Optional[str] = None

    def on_modified(self, event):
        """Called when a file in the watched directory is modified"""
        if not isinstance(event, FileModifiedEvent):
            return
        if os.path.abspath(event.src_path) == self.filepath:
            self.handle_change()

    def on_moved(self, event):
        """Editors that save via rename end with a move onto our path"""
        if isinstance(event, FileMovedEvent) and os.path.abspath(event.dest_path) == self.filepath:
            self.handle_change()

    def handle_change(self) -> bool:
        """
        Read the file and report it if it really changed.

        Returns True if on_change was called.
        """
        # Debounce - editors often write several times per save
        now = self.clock()
        if now - self.last_modified < self.DEBOUNCE_SECONDS:
            return False
        self.last_modified = now

        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                code = f.read()
        except OSError as e:
            logger.error("Error reading %s: %s", self.filepath, e)
            return False

        # Skip if content hasn't changed
        if code == self.last_content:
            return False
        self.last_content = code

        self.on_change(code)
        return True


class CodeFileWatcher:
    """Runs the watched file through the controller on every save"""

    def __init__(
        self,
        filepath: str,
        controller: 'TutoringController',
        loop: asyncio.AbstractEventLoop,
    ):
        self.filepath = os.path.abspath(filepath)
        self.controller = controller
        self.loop = loop
        self.observer = None
        self.handler = CodeFileHandler(self.filepath, self._on_change)
        self.task: Optional[asyncio.Task] = None
        self._queued: Optional[str] = None

    def _on_change(self, code: str) -> None:
        """Called on the watchdog thread; hands the code to the event loop"""
        self.loop.call_soon_threadsafe(self.submit, code)

    def submit(self, code: str) -> None:
        """
        Run ``code``, or queue it behind the run in progress.

        Only the newest queued save is kept. Must be called on the loop.
        """
        if self.task is not None and not self.task.done():
            logger.info("Run of %s in progress, queueing latest save", os.path.basename(self.filepath))
            self._queued = code
            return
        self.task = self.loop.create_task(self._run(code))

    async def _run(self, code: str) -> None:
        while code is not None:
            self.controller.renderer.set_code(code)
            await self.controller.run_code(code)
            code, self._queued = self._queued, None

    def start(self) -> None:
        """Start watching the file"""
        if not os.path.exists(self.filepath):
            raise FileNotFoundError(f"File not found: {self.filepath}")

        self.observer = Observer()
        watch_dir = os.path.dirname(self.filepath)
        self.observer.schedule(self.handler, path=watch_dir, recursive=False)
        self.observer.start()
        logger.info("Watching %s for changes", self.filepath)

    def stop(self) -> None:
        """Stop watching and drop any queued save"""
        self._queued = None
        if self.task is not None and not self.task.done():
            self.task.cancel()
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None

    @property
    def is_running(self) -> bool:
        return self.observer is not None
