"""Scripted in-memory reviewer for testing.

Records every call so tests can assert on remote traffic, including
the teardown of personas and threads.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from docuforce.constants import RunStatus
from docuforce.resilience.errors import ReviewerCallError
from docuforce.review.schemas import (
    MessageContent,
    ReviewerPersona,
    TextContent,
)

# Builds the reply for a thread from the user message sent to it.
ReplyFactory = Callable[[str], MessageContent]


class FakeReviewerClient:
    """ReviewerClient whose runs follow a fixed status script."""

    def __init__(
        self,
        reply: MessageContent | ReplyFactory | None = None,
        statuses: Iterable[RunStatus] = (RunStatus.COMPLETED,),
        *,
        fail_on: str | None = None,
        delay: float = 0.0,
    ) -> None:
        self._reply = reply
        self._statuses = tuple(statuses)
        self._fail_on = fail_on
        self._delay = delay
        self._counter = 0
        self._messages: dict[str, list[str]] = {}
        self._run_progress: dict[str, int] = {}
        self.calls: list[str] = []
        self.personas: dict[str, ReviewerPersona] = {}
        self.deleted_personas: list[str] = []
        self.deleted_threads: list[str] = []
        self.runs: dict[str, tuple[str, str]] = {}
        self.closed = False

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail_on == operation:
            raise ReviewerCallError(f"{operation} failed: scripted")

    @property
    def live_threads(self) -> set[str]:
        return set(self._messages).difference(self.deleted_threads)

    @property
    def sent_messages(self) -> list[str]:
        return [m for msgs in self._messages.values() for m in msgs]

    async def create_persona(self, persona: ReviewerPersona) -> str:
        await self._enter("create_persona")
        persona_id = self._next_id("asst")
        self.personas[persona_id] = persona
        return persona_id

    async def delete_persona(self, persona_id: str) -> None:
        await self._enter("delete_persona")
        self.deleted_personas.append(persona_id)

    async def create_thread(self) -> str:
        await self._enter("create_thread")
        thread_id = self._next_id("thread")
        self._messages[thread_id] = []
        return thread_id

    async def delete_thread(self, thread_id: str) -> None:
        await self._enter("delete_thread")
        self.deleted_threads.append(thread_id)

    async def add_message(self, thread_id: str, text: str) -> None:
        await self._enter("add_message")
        self._messages[thread_id].append(text)

    async def start_run(self, thread_id: str, persona_id: str) -> str:
        await self._enter("start_run")
        run_id = self._next_id("run")
        self._run_progress[run_id] = 0
        self.runs[run_id] = (thread_id, persona_id)
        return run_id

    async def run_status(self, thread_id: str, run_id: str) -> RunStatus:
        await self._enter("run_status")
        step = self._run_progress[run_id]
        self._run_progress[run_id] = step + 1
        return self._statuses[min(step, len(self._statuses) - 1)]

    async def latest_message(self, thread_id: str) -> MessageContent:
        await self._enter("latest_message")
        sent = self._messages[thread_id][-1]
        if self._reply is None:
            return TextContent("")
        if callable(self._reply):
            return self._reply(sent)
        return self._reply

    async def close(self) -> None:
        self.closed = True
