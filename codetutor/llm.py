#!/usr/bin/env python3
"""
Resilient completion client for the Gemini generateContent endpoint.

Turns a prompt plus the current conversation history into a validated
response string, retrying rate-limited and failed attempts with
exponential backoff.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from .config import Settings, language_name
from .logging_utils import get_logger
from .tutoring import prompts
from .tutoring.state import RetryState, Role, StateKey, StateStore, Turn

logger = get_logger(__name__)

RATE_LIMIT_STATUS = 429


# =============================================================================
# Errors
# =============================================================================

class CompletionError(Exception):
    """Base class for completion failures"""


class TransportError(CompletionError):
    """Non-2xx response from the completion service"""

    def __init__(self, status_code: int):
        super().__init__(f"API returned status code {status_code}")
        self.status_code = status_code


class RateLimitedError(TransportError):
    """HTTP 429: wait for the retry delay and try again"""

    def __init__(self):
        super().__init__(RATE_LIMIT_STATUS)


class MalformedResponseError(CompletionError):
    """2xx response without usable candidate text"""


class CompletionConnectionError(CompletionError):
    """The last allowed attempt failed; the tutor could not be reached"""


# =============================================================================
# Wire format
# =============================================================================

@dataclass(frozen=True)
class CandidateText:
    """A response carrying candidate text"""
    text: str


@dataclass(frozen=True)
class MalformedResponse:
    """A response without the expected candidate/content/parts/text shape"""
    reason: str


CompletionResult = Union[CandidateText, MalformedResponse]


def build_payload(contents: List[Dict[str, Any]], prompt: str, role: Role = Role.USER) -> Dict[str, Any]:
    """Request body: the given history followed by the new prompt"""
    return {'contents': list(contents) + [Turn(role=role, text=prompt).to_wire()]}


def parse_completion(data: Any) -> CompletionResult:
    """Validate a decoded response body once, at the boundary"""
    if not isinstance(data, dict):
        return MalformedResponse("response body is not an object")

    candidates = data.get('candidates')
    if not isinstance(candidates, list) or not candidates:
        return MalformedResponse("no candidates")

    content = candidates[0].get('content') if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return MalformedResponse("candidate has no content")

    parts = content.get('parts')
    if not isinstance(parts, list) or not parts:
        return MalformedResponse("candidate content has no parts")

    for part in parts:
        if isinstance(part, dict) and isinstance(part.get('text'), str) and part['text']:
            return CandidateText(text=part['text'])

    return MalformedResponse("candidate parts have no text")


# =============================================================================
# Backoff
# =============================================================================

class SharedBackoff:
    """
    Retry delay kept in the StateStore and shared by every in-flight call.

    Concurrent calls compound each other's backoff, and a success in one
    call resets the delay another call is still waiting on.
    """

    def __init__(self, store: StateStore):
        self.store = store

    @property
    def delay(self) -> int:
        return self.store.retry_delay()

    def increase(self) -> None:
        self.store.increase_retry_delay()

    def reset(self) -> None:
        self.store.reset_retry_delay()


Backoff = Union[SharedBackoff, RetryState]
Sleep = Callable[[float], Awaitable[Any]]


# =============================================================================
# Client
# =============================================================================

class CompletionClient:
    """
    Completion client with retry, backoff and response validation.

    Usage:
        store = StateStore.from_settings(settings)
        client = CompletionClient(store, settings)
        text = await client.complete("Explain loops")
    """

    def __init__(
        self,
        store: StateStore,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Args:
            store: Session state (history, loading status, shared retry delay)
            settings: Endpoint, credential and retry policy
            http_client: Optional preconfigured client (tests pass a MockTransport)
            sleep: Coroutine used for backoff waits, in seconds
        """
        self.store = store
        self.settings = settings
        self._sleep = sleep
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=settings.request_timeout)

    async def complete(
        self,
        prompt: str,
        role: Role = Role.USER,
        loading_message: str = prompts.LOADING_GENERATING_CONTENT,
    ) -> str:
        """
        Send ``prompt`` after the current history and return the reply text.

        The history itself is not modified. Returns the fixed apology text
        when every attempt was used up without a reply.

        Raises:
            CompletionConnectionError: the final attempt failed with a
                transport error or malformed response.
        """
        self.store.set_loading(True, loading_message)
        payload = build_payload(self.store.wire_history(), prompt, role)
        backoff = self._new_backoff()
        max_retries = self.settings.max_retries

        for attempt in range(max_retries):
            try:
                response = await self._post(payload)

                if response.is_success:
                    result = parse_completion(response.json())
                    if isinstance(result, CandidateText):
                        self.store.set_loading(False)
                        backoff.reset()
                        return result.text
                    raise MalformedResponseError(f"{prompts.UNEXPECTED_RESPONSE} ({result.reason})")

                if response.status_code == RATE_LIMIT_STATUS:
                    raise RateLimitedError()

                raise TransportError(response.status_code)

            except RateLimitedError:
                delay = backoff.delay
                logger.warning(
                    "%s Retrying in %.1fs (attempt %d/%d)",
                    prompts.API_RATE_LIMIT, delay / 1000, attempt + 1, max_retries,
                )
                await self._sleep(delay / 1000)
                backoff.increase()

            except Exception as e:
                logger.warning("Error calling completion API (attempt %d/%d): %s", attempt + 1, max_retries, e)

                if attempt == max_retries - 1:
                    self.store.set_loading(False)
                    raise CompletionConnectionError(prompts.API_CONNECTION) from e

                await self._sleep(backoff.delay / 1000)
                backoff.increase()

        self.store.set_loading(False)
        return prompts.DEFAULT_ERROR

    def _new_backoff(self) -> Backoff:
        if self.settings.shared_retry_delay:
            return SharedBackoff(self.store)
        initial = self.settings.initial_retry_delay_ms
        return RetryState(delay=initial, initial=initial, multiplier=self.settings.retry_multiplier)

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        params = {'key': self.settings.api_key} if self.settings.api_key else None
        return await self._http.post(self.settings.endpoint, params=params, json=payload)

    # =========================================================================
    # Prompt helpers
    # =========================================================================

    def _language(self) -> str:
        return language_name(self.store.get(StateKey.LANGUAGE))

    async def generate_lesson(self, topic: str = None) -> str:
        """Generate lesson markdown for ``topic``"""
        prompt = prompts.build_lesson_prompt(topic or self.settings.default_topic, self._language())
        return await self.complete(prompt, loading_message=prompts.LOADING_GENERATING_LESSON)

    async def generate_exercise(self, topic: str) -> str:
        """Generate a harder exercise on ``topic``"""
        prompt = prompts.build_exercise_prompt(topic, self._language())
        return await self.complete(prompt, loading_message=prompts.LOADING_GENERATING_EXERCISE)

    async def get_tutor_feedback(self, code: str, feedback_request: str = '') -> str:
        """Ask the tutor to coach the student on ``code``"""
        prompt = prompts.build_tutor_prompt(code, feedback_request, self._language())
        return await self.complete(prompt, Role.USER, loading_message=prompts.LOADING_THINKING)

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it"""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> 'CompletionClient':
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
