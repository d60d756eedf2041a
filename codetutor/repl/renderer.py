#!/usr/bin/env python3
"""
Console renderer for the tutoring REPL.
Owns the terminal's presentation regions: course content, conversation,
code buffer, chat input and console output.
"""

from typing import Callable, List, Optional, Tuple

from markdown_it import MarkdownIt
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from ..tutoring.interfaces import Renderer
from ..tutoring.state import LoadingStatus, StateKey, StateStore


def first_heading(markdown_text: str, level: int = 1) -> Optional[str]:
    """Plain text of the first heading at ``level`` in a markdown document"""
    tokens = MarkdownIt().parse(markdown_text or '')
    tag = f'h{level}'

    for i, token in enumerate(tokens):
        if token.type == 'heading_open' and token.tag == tag and i + 1 < len(tokens):
            inline = tokens[i + 1]
            text = ''.join(
                child.content for child in (inline.children or [])
                if child.type in ('text', 'code_inline')
            ).strip()
            return text or None
    return None


class ConsoleRenderer(Renderer):
    """Renders tutoring output with rich"""

    def __init__(self, console: Console = None):
        self.console = console or Console()

        # Region contents
        self.course_content = ''
        self.code = ''
        self.chat_input = ''
        self.console_output = ''
        self.console_is_error = False
        self.conversation: List[Tuple[str, str, bool]] = []
        self.loading = LoadingStatus()

    def bind(self, store: StateStore) -> Callable[[], None]:
        """Follow the store's loading status. Returns the unsubscribe function."""
        return store.subscribe(StateKey.LOADING, self._on_loading)

    def _on_loading(self, status: LoadingStatus) -> None:
        self.loading = status
        if status.active and status.message:
            self.console.print(f"[dim]{status.message}[/dim]")

    # =========================================================================
    # Markup
    # =========================================================================

    def render_markup(self, text: str) -> Markdown:
        """Markdown renderable; raw HTML in the text is not interpreted"""
        return Markdown(text or '')

    def show_notice(self, title: str, message: str) -> None:
        self.console.print(Panel(Text(message), title=f"[yellow]{title}[/yellow]", border_style="yellow"))

    # =========================================================================
    # Course content
    # =========================================================================

    def show_course_content(self, text: str) -> None:
        self.course_content = text
        self.console.print(Panel(
            self.render_markup(text),
            title=self.current_topic() or "Lesson",
            border_style="blue",
        ))

    def current_topic(self) -> Optional[str]:
        return first_heading(self.course_content)

    # =========================================================================
    # Conversation
    # =========================================================================

    def append_conversation_entry(self, sender: str, text: str, is_user: bool) -> None:
        self.conversation.append((sender, text, is_user))
        self.console.print(Panel(
            self.render_markup(text),
            title=f"[bold]{sender}[/bold]",
            title_align="right" if is_user else "left",
            border_style="cyan" if is_user else "green",
        ))

    def clear_conversation(self) -> None:
        self.conversation.clear()

    # =========================================================================
    # Code & chat input
    # =========================================================================

    def get_code(self) -> str:
        return self.code or ''

    def set_code(self, code: str) -> None:
        self.code = code

    def show_code(self) -> None:
        if not self.code:
            self.console.print("[dim]Code buffer is empty. Use 'edit' or 'run <file>'.[/dim]")
            return
        self.console.print(Panel(
            Syntax(self.code, "python", line_numbers=True),
            title="Your Code",
            border_style="blue",
        ))

    def get_chat_input(self) -> str:
        return (self.chat_input or '').strip()

    def clear_chat_input(self) -> None:
        self.chat_input = ''

    # =========================================================================
    # Console output
    # =========================================================================

    def update_console_output(self, text: str, is_error: bool = False) -> None:
        self.console_output = text
        self.console_is_error = is_error
        if text:
            self.console.print(Panel(
                Text(text),
                title="Error" if is_error else "Output",
                border_style="red" if is_error else "green",
            ))
