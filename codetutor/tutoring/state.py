#!/usr/bin/env python3
"""
State management for the tutoring client.

StateStore holds the keyed session values (loading status, conversation
history, retry delay, current lesson, execution results) and notifies
per-key subscribers synchronously whenever one of them changes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List

from ..logging_utils import get_logger

logger = get_logger(__name__)


class Role(Enum):
    """Who produced a turn"""
    USER = 'user'
    MODEL = 'model'    # The tutor (responder side of the conversation)


class StateKey(Enum):
    """Event kinds a subscriber can register for"""
    LOADING = 'loading'
    HISTORY = 'history'
    RETRY_DELAY = 'retry_delay'
    CURRENT_LESSON = 'current_lesson'
    EXECUTION_OUTPUT = 'execution_output'
    EXECUTION_ERROR = 'execution_error'
    ENGINE_READY = 'engine_ready'
    LANGUAGE = 'language'


@dataclass(frozen=True)
class Turn:
    """One role-tagged message in the conversation history"""
    role: Role
    text: str
    seq: int = 0    # Append order within the store

    def to_wire(self) -> Dict[str, Any]:
        """Completion service representation"""
        return {'role': self.role.value, 'parts': [{'text': self.text}]}


@dataclass(frozen=True)
class LoadingStatus:
    """Broadcast while a network or sandbox operation is running"""
    active: bool = False
    message: str = ''


@dataclass(frozen=True)
class ExecutionResult:
    """Captured result of running student code once"""
    stdout: str = ''
    stderr: str = ''
    success: bool = False


@dataclass
class RetryState:
    """Backoff bookkeeping owned by a single completion call"""
    delay: int = 1000
    attempt: int = 0
    initial: int = 1000
    multiplier: int = 2

    def increase(self) -> None:
        self.delay *= self.multiplier
        self.attempt += 1

    def reset(self) -> None:
        self.delay = self.initial
        self.attempt = 0


Subscriber = Callable[[Any], None]


class StateStore:
    """
    Keyed state container with synchronous change notification.

    Every mutator notifies the subscribers of the key(s) it touched before
    returning. A failing subscriber is logged and skipped; the remaining
    subscribers still run.
    """

    def __init__(
        self,
        max_history: int = 50,
        history_keep: int = 25,
        initial_retry_delay_ms: int = 1000,
        retry_multiplier: int = 2,
    ):
        if not 0 < history_keep <= max_history:
            raise ValueError("history_keep must be between 1 and max_history")

        self.max_history = max_history
        self.history_keep = history_keep
        self.initial_retry_delay_ms = initial_retry_delay_ms
        self.retry_multiplier = retry_multiplier

        self._values: Dict[StateKey, Any] = {
            StateKey.LOADING: LoadingStatus(),
            StateKey.HISTORY: [],
            StateKey.RETRY_DELAY: initial_retry_delay_ms,
            StateKey.CURRENT_LESSON: '',
            StateKey.EXECUTION_OUTPUT: None,
            StateKey.EXECUTION_ERROR: None,
            StateKey.ENGINE_READY: False,
            StateKey.LANGUAGE: 'en',
        }
        self._subscribers: Dict[StateKey, List[Subscriber]] = {}
        self._next_seq = 1

    @classmethod
    def from_settings(cls, settings) -> 'StateStore':
        """Build a store sized by a Settings instance"""
        store = cls(
            max_history=settings.max_history,
            history_keep=settings.history_keep,
            initial_retry_delay_ms=settings.initial_retry_delay_ms,
            retry_multiplier=settings.retry_multiplier,
        )
        store._values[StateKey.LANGUAGE] = settings.language
        return store

    # =========================================================================
    # Generic keyed access
    # =========================================================================

    def get(self, key: StateKey) -> Any:
        value = self._values[key]
        if key is StateKey.HISTORY:
            return list(value)
        return value

    def set(self, key: StateKey, value: Any) -> None:
        """Overwrite a value and notify its subscribers"""
        if key is StateKey.HISTORY:
            value = list(value)
            if len(value) > self.max_history:
                value = value[-self.history_keep:]
        self._values[key] = value
        self._notify(key)

    def subscribe(self, key: StateKey, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for changes to ``key``.

        Returns a function that removes the registration. Registering the
        same callback twice for a key has no extra effect.
        """
        callbacks = self._subscribers.setdefault(key, [])
        if callback not in callbacks:
            callbacks.append(callback)

        def unsubscribe() -> None:
            registered = self._subscribers.get(key)
            if registered and callback in registered:
                registered.remove(callback)

        return unsubscribe

    def _notify(self, key: StateKey) -> None:
        value = self.get(key)
        for callback in list(self._subscribers.get(key, ())):
            try:
                callback(value)
            except Exception:
                logger.exception("Error in state subscriber for %s", key.value)

    # =========================================================================
    # Conversation history
    # =========================================================================

    def append_turn(self, role: Role, text: str) -> Turn:
        """
        Append a turn, trimming to the most recent ``history_keep`` turns
        when the history grows past ``max_history``.
        """
        turn = Turn(role=role, text=text, seq=self._next_seq)
        self._next_seq += 1

        history = self._values[StateKey.HISTORY]
        history.append(turn)
        if len(history) > self.max_history:
            dropped = len(history) - self.history_keep
            self._values[StateKey.HISTORY] = history[-self.history_keep:]
            logger.debug("History over %d turns, dropped %d oldest", self.max_history, dropped)

        self._notify(StateKey.HISTORY)
        return turn

    def clear_history(self) -> None:
        self._values[StateKey.HISTORY] = []
        self._notify(StateKey.HISTORY)

    def history(self) -> List[Turn]:
        """Copy of the current history"""
        return list(self._values[StateKey.HISTORY])

    def wire_history(self) -> List[Dict[str, Any]]:
        """History in the completion service's ``contents`` format"""
        return [turn.to_wire() for turn in self._values[StateKey.HISTORY]]

    # =========================================================================
    # Loading / engine status
    # =========================================================================

    def set_loading(self, active: bool, message: str = '') -> None:
        self.set(StateKey.LOADING, LoadingStatus(active=active, message=message))

    @property
    def is_loading(self) -> bool:
        return self._values[StateKey.LOADING].active

    def set_engine_ready(self, ready: bool) -> None:
        self.set(StateKey.ENGINE_READY, ready)

    # =========================================================================
    # Retry delay (shared across completion calls)
    # =========================================================================

    def retry_delay(self) -> int:
        return self._values[StateKey.RETRY_DELAY]

    def reset_retry_delay(self) -> None:
        self.set(StateKey.RETRY_DELAY, self.initial_retry_delay_ms)

    def increase_retry_delay(self) -> None:
        self.set(StateKey.RETRY_DELAY, self.retry_delay() * self.retry_multiplier)

    # =========================================================================
    # Lesson output slot
    # =========================================================================

    def set_execution_output(self, result: ExecutionResult) -> None:
        """Record a run result and clear any earlier error"""
        self._values[StateKey.EXECUTION_OUTPUT] = result
        self._values[StateKey.EXECUTION_ERROR] = None
        self._notify(StateKey.EXECUTION_OUTPUT)
        self._notify(StateKey.EXECUTION_ERROR)

    def set_execution_error(self, message: str) -> None:
        """Record a run error and clear the previous output"""
        self._values[StateKey.EXECUTION_ERROR] = message
        self._values[StateKey.EXECUTION_OUTPUT] = None
        self._notify(StateKey.EXECUTION_ERROR)
        self._notify(StateKey.EXECUTION_OUTPUT)

    def snapshot(self) -> Dict[str, Any]:
        """Plain view of every value, for status display and debugging"""
        snap: Dict[str, Any] = {key.value: self.get(key) for key in StateKey}
        snap['history_length'] = len(self._values[StateKey.HISTORY])
        return snap
