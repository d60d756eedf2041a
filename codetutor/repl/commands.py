#!/usr/bin/env python3
"""
Command definitions for the tutoring REPL.
"""

COMMANDS = {
    # Learning
    'lesson': {
        'help': 'Generate a new lesson (starts a fresh conversation)',
        'usage': 'lesson [topic]',
        'examples': ['lesson', 'lesson "for loops"', 'lesson dictionaries'],
    },
    'exercise': {
        'help': 'Generate a harder exercise on the current topic',
        'usage': 'exercise',
        'examples': ['exercise'],
    },
    'ask': {
        'help': 'Ask the tutor a question (plain text works too)',
        'usage': 'ask <question>',
        'examples': ['ask What is a list comprehension?', 'Why does my loop never end?'],
    },

    # Code
    'edit': {
        'help': 'Type or paste code into the code buffer (Esc+Enter to finish)',
        'usage': 'edit',
        'examples': ['edit'],
    },
    'code': {
        'help': 'Show the code buffer',
        'usage': 'code',
        'examples': ['code'],
    },
    'run': {
        'help': 'Run the code buffer (or a file) and get tutor feedback',
        'usage': 'run [file]',
        'examples': ['run', 'run exercise.py'],
    },
    'watch': {
        'help': 'Run a file and get feedback every time you save it',
        'usage': 'watch <file>',
        'examples': ['watch exercise.py'],
    },
    'unwatch': {
        'help': 'Stop watching the current file',
        'usage': 'unwatch',
        'examples': ['unwatch'],
    },

    # Session
    'language': {
        'help': 'Show or set the language the tutor answers in',
        'usage': 'language [code]',
        'examples': ['language', 'language es'],
    },
    'history': {
        'help': 'Show the conversation history sent to the tutor',
        'usage': 'history',
        'examples': ['history'],
    },
    'status': {
        'help': 'Show session status',
        'usage': 'status',
        'examples': ['status'],
    },
    'reset': {
        'help': 'Clear the conversation, output and code buffer',
        'usage': 'reset',
        'examples': ['reset'],
    },

    # Utilities
    'help': {
        'help': 'Show available commands',
        'usage': 'help [command]',
        'examples': ['help', 'help run'],
    },
    'clear': {
        'help': 'Clear the screen',
        'usage': 'clear',
        'examples': ['clear'],
    },
    'exit': {
        'help': 'Exit the tutor',
        'usage': 'exit',
        'examples': ['exit', 'quit'],
    },
    'quit': {
        'help': 'Exit the tutor (alias for exit)',
        'usage': 'quit',
        'examples': ['quit'],
    },
}


def get_command_help(command: str = None) -> str:
    """Get help text for a command or all commands"""
    if command and command in COMMANDS:
        cmd = COMMANDS[command]
        lines = [
            f"  {command}: {cmd['help']}",
            f"  Usage: {cmd['usage']}",
        ]
        if cmd.get('examples'):
            lines.append(f"  Examples: {', '.join(cmd['examples'])}")
        return '\n'.join(lines)

    # Show all commands grouped
    groups = {
        'Learning': ['lesson', 'exercise', 'ask'],
        'Code': ['edit', 'code', 'run', 'watch', 'unwatch'],
        'Session': ['language', 'history', 'status', 'reset'],
        'Utilities': ['help', 'clear', 'exit'],
    }

    lines = ["Available commands:\n"]
    for group, cmds in groups.items():
        lines.append(f"  {group}:")
        for cmd in cmds:
            if cmd in COMMANDS:
                lines.append(f"    {cmd:10} - {COMMANDS[cmd]['help']}")
        lines.append("")

    lines.append("Anything that isn't a command is sent to the tutor as a chat message.")
    lines.append("Type 'help <command>' for detailed help on a specific command.")
    return '\n'.join(lines)
