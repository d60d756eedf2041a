#!/usr/bin/env python3
"""
CodeTutor - Interactive Python Tutor CLI

Usage:
    codetutor                          # Start the tutor with the default lesson
    codetutor --topic "for loops"      # Start with a lesson on a topic
    codetutor --language es            # Tutor answers in Spanish
    codetutor --setup                  # Configure the API key
"""

import asyncio
import argparse
import sys

from . import __version__
from . import config
from .config import Settings
from .logging_utils import configure_logging, set_verbose


def _run_setup() -> None:
    """Interactive API key setup"""
    print("CodeTutor Setup")
    print("=" * 40)
    current = config.load_config().get(config.API_KEY_CONFIG_KEY)
    if current:
        print(f"\nCurrent API key: ...{current[-6:]}")
        replace = input("Replace with new key? [y/N]: ").strip().lower()
        if replace != 'y':
            print("Setup complete.")
            return
    config.prompt_for_api_key()


def main():
    """Main CLI entry point"""

    parser = argparse.ArgumentParser(
        description='CodeTutor - learn Python with an AI tutor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  codetutor --setup                   # Configure API key (first time)
  codetutor                           # Start with the default lesson
  codetutor --topic "list comprehensions"
  codetutor --language fr             # Lessons and feedback in French
  codetutor --no-lesson               # Skip the opening lesson
        """
    )

    parser.add_argument('--setup', action='store_true',
                        help='Configure CodeTutor (set API key)')
    parser.add_argument('--clear-key', action='store_true',
                        help='Remove the stored API key')
    parser.add_argument('--language', metavar='CODE',
                        help='Language the tutor answers in (saved for next time)')
    parser.add_argument('--topic', help='Topic of the opening lesson')
    parser.add_argument('--no-lesson', action='store_true',
                        help='Start without generating a lesson')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show debug logging')
    parser.add_argument('--version', action='version', version=f'codetutor {__version__}')

    args = parser.parse_args()

    configure_logging()
    set_verbose(args.verbose)

    if args.setup:
        _run_setup()
        return

    if args.clear_key:
        if config.clear_api_key():
            print("Stored API key removed.")
        else:
            print("No stored API key.")
        return

    if args.language:
        try:
            config.set_language(args.language)
        except ValueError as e:
            parser.error(str(e))

    api_key = config.get_api_key(prompt_if_missing=sys.stdin.isatty())
    if not api_key:
        print(f"Warning: no API key. Set {config.API_KEY_ENV_VAR} or run 'codetutor --setup'.")

    settings = Settings.load().with_overrides(api_key=api_key or '')

    from .repl import TutorREPL
    repl = TutorREPL(settings)
    code = asyncio.run(repl.run(topic=args.topic, generate_lesson=not args.no_lesson))
    sys.exit(code)


if __name__ == "__main__":
    main()
