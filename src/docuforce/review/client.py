"""Remote reviewer client: protocol plus the OpenAI Assistants implementation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import openai
from circuitbreaker import (  # pyright: ignore[reportUnknownVariableType]
    CircuitBreaker,
    CircuitBreakerError,
)
from openai import AsyncOpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from docuforce.config import Settings
from docuforce.constants import (
    CB_REVIEWER_FAILURE_THRESHOLD,
    CB_REVIEWER_RECOVERY_TIMEOUT,
    RETRY_INITIAL_WAIT,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_WAIT,
    RunStatus,
)
from docuforce.resilience.errors import (
    ReviewerCallError,
    ReviewerConfigError,
)
from docuforce.review.schemas import (
    MessageContent,
    RefusalContent,
    ReviewerPersona,
    TextContent,
    UnsupportedContent,
)

logger = logging.getLogger(__name__)


class ReviewerClient(Protocol):
    """Session primitives of a remote reviewer.

    Identifiers are opaque strings issued by the remote side.
    """

    async def create_persona(self, persona: ReviewerPersona) -> str: ...
    async def delete_persona(self, persona_id: str) -> None: ...
    async def create_thread(self) -> str: ...
    async def delete_thread(self, thread_id: str) -> None: ...
    async def add_message(self, thread_id: str, text: str) -> None: ...
    async def start_run(self, thread_id: str, persona_id: str) -> str: ...
    async def run_status(
        self, thread_id: str, run_id: str
    ) -> RunStatus: ...
    async def latest_message(self, thread_id: str) -> MessageContent: ...
    async def close(self) -> None: ...


def _is_non_rate_limit_error(
    thrown_type: type, thrown_value: BaseException
) -> bool:
    """Return True if NOT a rate limit error (should count as CB failure).

    Rate limit errors are backpressure, not an outage, so they are
    retried by tenacity and kept out of the breaker's failure count.
    """
    return not issubclass(thrown_type, openai.RateLimitError)


class OpenAIReviewerClient:
    """ReviewerClient backed by the OpenAI Assistants API.

    A persona is an assistant; threads, messages and runs map one to one.
    Every call goes through a circuit breaker shared by all rounds using
    this client (so an outage fails the rest of a batch fast) and retries
    HTTP 429 with jittered exponential backoff.
    """

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client
        self._breaker = CircuitBreaker(  # pyright: ignore[reportUnknownMemberType]
            failure_threshold=CB_REVIEWER_FAILURE_THRESHOLD,
            recovery_timeout=CB_REVIEWER_RECOVERY_TIMEOUT,
            expected_exception=_is_non_rate_limit_error,
            name=f"reviewer_{id(self):x}",
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIReviewerClient:
        if not settings.openai_api_key:
            raise ReviewerConfigError(
                "OPENAI_API_KEY is not set; the reviewer cannot be reached"
            )
        return cls(AsyncOpenAI(api_key=settings.openai_api_key))

    # ------------------------------------------------------------------
    # Guarded call
    # ------------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(RETRY_MAX_ATTEMPTS),
        wait=wait_exponential_jitter(
            initial=RETRY_INITIAL_WAIT, max=RETRY_MAX_WAIT
        ),
        retry=retry_if_exception_type(openai.RateLimitError),
        reraise=True,
    )
    async def _attempt(self, request: Callable[[], Awaitable[Any]]) -> Any:
        if self._breaker.opened:  # pyright: ignore[reportUnknownMemberType]
            raise CircuitBreakerError(self._breaker)  # pyright: ignore[reportUnknownArgumentType]
        with self._breaker:  # pyright: ignore[reportUnknownMemberType]
            return await request()

    async def _call(
        self, operation: str, request: Callable[[], Awaitable[Any]]
    ) -> Any:
        try:
            return await self._attempt(request)
        except CircuitBreakerError as exc:
            raise ReviewerCallError(
                f"{operation}: reviewer circuit is open"
            ) from exc
        except openai.OpenAIError as exc:
            raise ReviewerCallError(
                f"{operation} failed: {exc}",
                status_code=getattr(exc, "status_code", None),
            ) from exc

    # ------------------------------------------------------------------
    # Persona
    # ------------------------------------------------------------------

    async def create_persona(self, persona: ReviewerPersona) -> str:
        assistant = await self._call(
            "create_persona",
            lambda: self._client.beta.assistants.create(
                name=persona.name,
                instructions=persona.instructions,
                model=persona.model,
            ),
        )
        return str(assistant.id)

    async def delete_persona(self, persona_id: str) -> None:
        await self._call(
            "delete_persona",
            lambda: self._client.beta.assistants.delete(
                assistant_id=persona_id
            ),
        )

    # ------------------------------------------------------------------
    # Thread and messages
    # ------------------------------------------------------------------

    async def create_thread(self) -> str:
        thread = await self._call(
            "create_thread", lambda: self._client.beta.threads.create()
        )
        return str(thread.id)

    async def delete_thread(self, thread_id: str) -> None:
        await self._call(
            "delete_thread",
            lambda: self._client.beta.threads.delete(thread_id=thread_id),
        )

    async def add_message(self, thread_id: str, text: str) -> None:
        await self._call(
            "add_message",
            lambda: self._client.beta.threads.messages.create(
                thread_id=thread_id, role="user", content=text
            ),
        )

    async def latest_message(self, thread_id: str) -> MessageContent:
        """First content block of the newest message in the thread."""
        page = await self._call(
            "latest_message",
            lambda: self._client.beta.threads.messages.list(
                thread_id=thread_id, order="desc", limit=1
            ),
        )
        if not page.data:
            raise ReviewerCallError(f"thread {thread_id} has no messages")
        message = page.data[0]
        if message.role != "assistant":
            raise ReviewerCallError(
                f"thread {thread_id} has no reviewer reply"
            )
        if not message.content:
            raise ReviewerCallError(
                f"reviewer reply in thread {thread_id} is empty"
            )
        return _to_content(message.content[0])

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def start_run(self, thread_id: str, persona_id: str) -> str:
        run = await self._call(
            "start_run",
            lambda: self._client.beta.threads.runs.create(
                thread_id=thread_id, assistant_id=persona_id
            ),
        )
        return str(run.id)

    async def run_status(self, thread_id: str, run_id: str) -> RunStatus:
        run = await self._call(
            "run_status",
            lambda: self._client.beta.threads.runs.retrieve(
                run_id=run_id, thread_id=thread_id
            ),
        )
        try:
            return RunStatus(run.status)
        except ValueError as exc:
            raise ReviewerCallError(
                f"unknown run status {run.status!r}"
            ) from exc

    async def close(self) -> None:
        await self._client.close()


def _to_content(block: Any) -> MessageContent:
    """Map an Assistants content block onto the content union."""
    kind = getattr(block, "type", None)
    if kind == "text":
        return TextContent(block.text.value)
    if kind == "refusal":
        return RefusalContent(block.refusal)
    logger.error(
        "event=unsupported_reply_content type=%s", kind
    )
    return UnsupportedContent(remote_type=str(kind))
