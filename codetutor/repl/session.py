#!/usr/bin/env python3
"""
Interactive REPL session for the Python tutor.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional, Set

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import config
from ..config import Settings
from ..integrations import PythonExecutionEngine
from ..llm import CompletionClient
from ..logging_utils import get_logger
from ..tutoring import StateKey, StateStore, TutoringController
from ..tutoring.file_watcher import CodeFileWatcher
from .commands import get_command_help
from .renderer import ConsoleRenderer

logger = get_logger(__name__)


class TutorREPL:
    """Interactive REPL for lessons, exercises, chat and code feedback"""

    def __init__(self, settings: Settings = None, console: Console = None):
        self.settings = settings or Settings.load()
        self.console = console or Console()

        self.store = StateStore.from_settings(self.settings)
        self.renderer = ConsoleRenderer(self.console)
        self.renderer.bind(self.store)
        self.client = CompletionClient(self.store, self.settings)
        self.engine = PythonExecutionEngine(timeout=self.settings.execution_timeout)
        self.controller = TutoringController(
            self.store, self.client, self.engine, self.renderer, self.settings,
        )

        self.watcher: Optional[CodeFileWatcher] = None
        self._tasks: Set[asyncio.Task] = set()

        # REPL setup
        history_path = config.get_config_dir() / 'repl_history'
        self.prompt_session = PromptSession(
            history=FileHistory(str(history_path)),
            auto_suggest=AutoSuggestFromHistory(),
        )

    async def run(self, topic: str = None, generate_lesson: bool = True) -> int:
        """Main REPL loop. Returns the process exit code."""
        self._print_welcome()

        if not await self.controller.initialize(topic, generate_lesson=generate_lesson):
            await self._shutdown()
            return 1

        try:
            with patch_stdout(raw=True):
                while True:
                    try:
                        user_input = await self.prompt_session.prompt_async(self._get_prompt())

                        if not user_input.strip():
                            continue

                        result = await self._process_command(user_input.strip())

                        if result == 'exit':
                            break

                    except KeyboardInterrupt:
                        self.console.print("\n[dim]Use 'exit' to quit[/dim]")
                    except EOFError:
                        break
                    except Exception as e:
                        logger.exception("Command failed")
                        self.console.print(f"[red]Error: {e}[/red]")
        finally:
            await self._shutdown()

        self.console.print("[dim]Goodbye![/dim]")
        return 0

    def _print_welcome(self):
        """Print welcome message"""
        welcome = """
[bold blue]CodeTutor[/bold blue] - Interactive Python Tutor

Lessons, exercises and feedback on the code you run.

[dim]Commands: lesson, exercise, edit, run, watch, help
Anything else you type is sent to the tutor.[/dim]
"""
        self.console.print(Panel(welcome, border_style="blue"))

        if not self.settings.api_key:
            self.console.print(
                f"[yellow]Note: No API key configured. Run 'codetutor --setup' "
                f"or set {config.API_KEY_ENV_VAR}.[/yellow]"
            )

    def _get_prompt(self) -> str:
        """Generate context-aware prompt"""
        parts = ['tutor']

        topic = self.renderer.current_topic()
        if topic:
            parts.append(f"[{topic[:30]}]")

        if self.watcher and self.watcher.is_running:
            parts.append(f"(watching {os.path.basename(self.watcher.filepath)})")

        return ' '.join(parts) + '> '

    async def _process_command(self, user_input: str) -> Optional[str]:
        """Process user input and dispatch to handlers"""
        parts = user_input.split(maxsplit=1)
        command = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ''

        handlers = {
            'lesson': self._cmd_lesson,
            'exercise': self._cmd_exercise,
            'ask': self._cmd_ask,
            'edit': self._cmd_edit,
            'code': self._cmd_code,
            'run': self._cmd_run,
            'watch': self._cmd_watch,
            'unwatch': self._cmd_unwatch,
            'language': self._cmd_language,
            'history': self._cmd_history,
            'status': self._cmd_status,
            'reset': self._cmd_reset,
            'help': self._cmd_help,
            'clear': self._cmd_clear,
        }

        if command in ('exit', 'quit'):
            return 'exit'

        handler = handlers.get(command)
        if handler:
            await handler(args)
        else:
            # Anything unrecognized is a chat message
            await self._cmd_ask(user_input)
        return None

    # =========================================================================
    # Background workflows
    # =========================================================================

    def _spawn(self, coro) -> asyncio.Task:
        """Run a workflow without blocking the prompt"""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background task failed: %s", error, exc_info=error)

    async def _shutdown(self) -> None:
        if self.watcher:
            self.watcher.stop()
            self.watcher = None

        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self.client.aclose()

    # =========================================================================
    # Learning
    # =========================================================================

    async def _cmd_lesson(self, args: str) -> None:
        """Generate a new lesson"""
        topic = args.strip().strip('"\'') or None
        self._spawn(self.controller.generate_lesson(topic))

    async def _cmd_exercise(self, args: str) -> None:
        """Generate a harder exercise"""
        self._spawn(self.controller.new_exercise())

    async def _cmd_ask(self, args: str) -> None:
        """Chat with the tutor"""
        if not args.strip():
            self.console.print("[red]Usage: ask <question>[/red]")
            return
        self._spawn(self.controller.send_chat(args))

    # =========================================================================
    # Code
    # =========================================================================

    async def _cmd_edit(self, args: str) -> None:
        """Read code into the buffer"""
        self.console.print("[dim]Enter your code. Press Esc then Enter to finish.[/dim]")
        try:
            code = await self.prompt_session.prompt_async(
                '... ', multiline=True, default=self.renderer.get_code(),
            )
        except KeyboardInterrupt:
            self.console.print("[dim]Edit cancelled.[/dim]")
            return

        self.renderer.set_code(code)
        self.console.print(f"[green]Code buffer updated ({len(code.splitlines())} lines).[/green]")

    async def _cmd_code(self, args: str) -> None:
        """Show the code buffer"""
        self.renderer.show_code()

    async def _cmd_run(self, args: str) -> None:
        """Run the code buffer, or a file"""
        if args:
            path = Path(os.path.expanduser(args.strip()))
            try:
                self.renderer.set_code(path.read_text(encoding='utf-8'))
            except OSError as e:
                self.console.print(f"[red]Could not read {path}: {e}[/red]")
                return

        self._spawn(self.controller.run_code(self.renderer.get_code()))

    async def _cmd_watch(self, args: str) -> None:
        """Run a file every time it is saved"""
        if not args:
            self.console.print("[red]Usage: watch <file>[/red]")
            return

        if self.watcher:
            self.watcher.stop()
            self.watcher = None

        watcher = CodeFileWatcher(
            os.path.expanduser(args.strip()), self.controller, asyncio.get_running_loop(),
        )
        try:
            watcher.start()
        except FileNotFoundError as e:
            self.console.print(f"[red]{e}[/red]")
            return

        self.watcher = watcher
        self.console.print(f"[green]Watching {watcher.filepath}[/green]")
        self.console.print("[dim]Save the file to run it. Use 'unwatch' to stop.[/dim]")

    async def _cmd_unwatch(self, args: str) -> None:
        """Stop watching"""
        if not self.watcher:
            self.console.print("[yellow]Not watching any file.[/yellow]")
            return

        self.watcher.stop()
        self.console.print(f"[dim]Stopped watching {self.watcher.filepath}[/dim]")
        self.watcher = None

    # =========================================================================
    # Session
    # =========================================================================

    async def _cmd_language(self, args: str) -> None:
        """Show or set the tutor's language"""
        if not args:
            code = self.store.get(StateKey.LANGUAGE)
            self.console.print(f"Language: [cyan]{code}[/cyan] ({config.language_name(code)})")
            return

        try:
            code = config.set_language(args)
        except ValueError as e:
            self.console.print(f"[red]{e}[/red]")
            return

        self.store.set(StateKey.LANGUAGE, code)
        self.console.print(f"[green]Language set to {config.language_name(code)}.[/green]")

    async def _cmd_history(self, args: str) -> None:
        """Show the conversation history"""
        turns = self.store.history()
        if not turns:
            self.console.print("[dim]No conversation yet.[/dim]")
            return

        table = Table(title="Conversation History")
        table.add_column("#", style="dim")
        table.add_column("Role", style="cyan")
        table.add_column("Text")

        for turn in turns:
            text = turn.text.replace('\n', ' ')
            table.add_row(str(turn.seq), turn.role.value, text[:60] + '...' if len(text) > 60 else text)

        self.console.print(table)

    async def _cmd_status(self, args: str) -> None:
        """Show session status"""
        status = self.controller.status()

        table = Table(title="Session Status", show_header=False)
        table.add_column("Key", style="cyan")
        table.add_column("Value")

        table.add_row("Model", self.settings.model)
        table.add_row("Python ready", "yes" if status['engine_ready'] else "no")
        table.add_row("Busy", "yes" if status['loading'] else "no")
        table.add_row("History", f"{status['history_length']}/{self.settings.max_history} turns")
        table.add_row("Retry delay", f"{status['retry_delay_ms']} ms")
        table.add_row("Language", status['language'])
        table.add_row("Topic", self.renderer.current_topic() or "-")
        table.add_row("Watching", self.watcher.filepath if self.watcher else "-")

        self.console.print(table)

    async def _cmd_reset(self, args: str) -> None:
        """Clear conversation, output and code"""
        self.controller.reset()
        self.console.print("[green]Session cleared.[/green]")

    # =========================================================================
    # Utilities
    # =========================================================================

    async def _cmd_help(self, args: str) -> None:
        """Show help"""
        self.console.print(get_command_help(args if args else None))

    async def _cmd_clear(self, args: str) -> None:
        """Clear screen"""
        self.console.clear()
