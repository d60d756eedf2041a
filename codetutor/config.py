#!/usr/bin/env python3
"""
Configuration management for CodeTutor.
Handles the API key, the language preference and runtime settings.

Preferences are kept in ~/.codetutor/config.json (override the directory
with CODETUTOR_HOME). Runtime settings layer defaults < config file <
environment variables.
"""

import os
import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Dict, Any
from getpass import getpass


DEFAULT_LANGUAGE = 'en'
DEFAULT_BASE_URL = (
    'https://generativelanguage.googleapis.com/v1beta/models/'
    '{model}:generateContent'
)
DEFAULT_MODEL = 'gemini-2.5-flash-preview-05-20'
DEFAULT_TOPIC = 'variables, data types, and basic operations'

API_KEY_ENV_VAR = 'GOOGLE_API_KEY'
API_KEY_CONFIG_KEY = 'gemini_api_key'
API_KEY_URL = 'https://aistudio.google.com/app/apikey'

LANGUAGE_NAMES = {
    'en': 'English',
    'es': 'Spanish',
    'fr': 'French',
    'de': 'German',
    'pt': 'Portuguese',
    'it': 'Italian',
    'ja': 'Japanese',
    'zh': 'Chinese',
}


def get_config_dir() -> Path:
    """Get the CodeTutor config directory (~/.codetutor)"""
    override = os.getenv('CODETUTOR_HOME')
    config_dir = Path(override) if override else Path.home() / '.codetutor'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path"""
    return get_config_dir() / 'config.json'


def load_config() -> Dict[str, Any]:
    """Load configuration from file"""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file"""
    config_path = get_config_path()
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)
    # Secure the file (read/write only for owner)
    config_path.chmod(0o600)


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a specific config value"""
    config = load_config()
    return config.get(key, default)


def set_config_value(key: str, value: Any) -> None:
    """Set a specific config value"""
    config = load_config()
    config[key] = value
    save_config(config)


# =============================================================================
# Language preference
# =============================================================================

def get_language() -> str:
    """Get the stored language code, falling back to the default locale"""
    language = get_config_value('language')
    if not language or not isinstance(language, str):
        return DEFAULT_LANGUAGE
    return language


def set_language(code: str) -> str:
    """Persist the language preference. Returns the normalized code."""
    code = code.strip().lower()
    if not code:
        raise ValueError("Language code cannot be empty")
    set_config_value('language', code)
    return code


def language_name(code: str) -> str:
    """Human readable language name for prompts ('es' -> 'Spanish')"""
    return LANGUAGE_NAMES.get(code.lower(), code)


# =============================================================================
# API key
# =============================================================================

def get_api_key(prompt_if_missing: bool = False) -> Optional[str]:
    """
    Get the completion service API key.

    Priority:
    1. GOOGLE_API_KEY environment variable
    2. gemini_api_key in the config file
    3. Interactive prompt (if prompt_if_missing=True)
    """
    api_key = os.getenv(API_KEY_ENV_VAR)
    if api_key:
        return api_key

    api_key = get_config_value(API_KEY_CONFIG_KEY)
    if api_key:
        return api_key

    if prompt_if_missing:
        return prompt_for_api_key()

    return None


def prompt_for_api_key() -> Optional[str]:
    """
    Interactively prompt user for API key and offer to save it.

    Returns:
        API key string or None if user declines
    """
    print("\n" + "=" * 60)
    print("CodeTutor API Key Setup")
    print("=" * 60)
    print(f"\nGet a Gemini API key at: {API_KEY_URL}")
    print(f"Your key will be stored locally in {get_config_path()}")
    print()

    try:
        api_key = getpass("Paste your API key (input hidden): ").strip()

        if not api_key:
            print("\nNo key provided. The tutor will not be able to respond.")
            return None

        save = input(f"\nSave key to {get_config_path()} for future sessions? [Y/n]: ").strip().lower()

        if save != 'n':
            set_config_value(API_KEY_CONFIG_KEY, api_key)
            print("Key saved!")
        else:
            print("Key will only be used for this session.")

        return api_key

    except (KeyboardInterrupt, EOFError):
        print("\nCancelled.")
        return None


def clear_api_key() -> bool:
    """Remove stored API key from config. Returns True if one was removed."""
    config = load_config()
    if API_KEY_CONFIG_KEY not in config:
        return False
    del config[API_KEY_CONFIG_KEY]
    save_config(config)
    return True


# =============================================================================
# Runtime settings
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings, created once at startup and passed around."""
    api_key: str = ''
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL

    # Retry policy
    max_retries: int = 5
    initial_retry_delay_ms: int = 1000
    retry_multiplier: int = 2
    shared_retry_delay: bool = True

    # Conversation history bounds
    max_history: int = 50
    history_keep: int = 25

    # Lessons
    default_topic: str = DEFAULT_TOPIC
    language: str = DEFAULT_LANGUAGE

    # Timeouts (seconds)
    request_timeout: float = 60.0
    execution_timeout: float = 10.0

    @property
    def endpoint(self) -> str:
        """Completion endpoint with the model substituted in"""
        return self.base_url.format(model=self.model)

    def with_overrides(self, **changes) -> 'Settings':
        """Return a copy with the given fields replaced"""
        return replace(self, **changes)

    @classmethod
    def load(cls) -> 'Settings':
        """
        Build settings from defaults, the config file and the environment.

        Priority: Environment variables > Config file > Defaults
        """
        config = load_config()

        def pick(env_var: str, config_key: str, default):
            value = os.getenv(env_var)
            if value:
                return value
            return config.get(config_key, default)

        return cls(
            api_key=get_api_key() or '',
            base_url=pick('CODETUTOR_BASE_URL', 'base_url', DEFAULT_BASE_URL),
            model=pick('CODETUTOR_MODEL', 'model', DEFAULT_MODEL),
            max_retries=int(pick('CODETUTOR_MAX_RETRIES', 'max_retries', 5)),
            initial_retry_delay_ms=int(pick('CODETUTOR_RETRY_DELAY_MS', 'retry_delay_ms', 1000)),
            shared_retry_delay=bool(config.get('shared_retry_delay', True)),
            default_topic=config.get('default_topic', DEFAULT_TOPIC),
            language=get_language(),
            execution_timeout=float(config.get('execution_timeout', 10.0)),
        )
