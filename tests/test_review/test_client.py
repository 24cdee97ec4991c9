"""Tests for the OpenAI Assistants reviewer client (no network)."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from tenacity import wait_none

from docuforce.config import Settings
from docuforce.constants import CB_REVIEWER_FAILURE_THRESHOLD, RunStatus
from docuforce.resilience.errors import (
    ErrorClass,
    ReviewerCallError,
    ReviewerConfigError,
    classify_error,
)
from docuforce.review.client import OpenAIReviewerClient
from docuforce.review.schemas import (
    RefusalContent,
    ReviewerPersona,
    TextContent,
    UnsupportedContent,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/threads")


@pytest.fixture(autouse=True)
def _disable_retry_wait() -> Any:
    """Disable tenacity wait time for fast tests."""
    attempt = OpenAIReviewerClient._attempt  # pyright: ignore[reportPrivateUsage]
    original_wait = attempt.retry.wait  # type: ignore[attr-defined]
    attempt.retry.wait = wait_none()  # type: ignore[attr-defined]
    yield
    attempt.retry.wait = original_wait  # type: ignore[attr-defined]


@pytest.fixture
def sdk() -> MagicMock:
    """AsyncOpenAI stand-in exposing the beta assistants surface."""
    sdk = MagicMock()
    sdk.beta.assistants.create = AsyncMock(
        return_value=SimpleNamespace(id="asst_1")
    )
    sdk.beta.assistants.delete = AsyncMock()
    sdk.beta.threads.create = AsyncMock(
        return_value=SimpleNamespace(id="thread_1")
    )
    sdk.beta.threads.delete = AsyncMock()
    sdk.beta.threads.messages.create = AsyncMock()
    sdk.beta.threads.messages.list = AsyncMock()
    sdk.beta.threads.runs.create = AsyncMock(
        return_value=SimpleNamespace(id="run_1")
    )
    sdk.beta.threads.runs.retrieve = AsyncMock()
    sdk.close = AsyncMock()
    return sdk


@pytest.fixture
def client(sdk: MagicMock) -> OpenAIReviewerClient:
    return OpenAIReviewerClient(sdk)


def _rate_limited() -> openai.RateLimitError:
    return openai.RateLimitError(
        "Rate limit reached",
        response=httpx.Response(429, request=_REQUEST),
        body=None,
    )


def _server_error() -> openai.InternalServerError:
    return openai.InternalServerError(
        "The server had an error",
        response=httpx.Response(500, request=_REQUEST),
        body=None,
    )


def _reply(*blocks: Any, role: str = "assistant") -> SimpleNamespace:
    return SimpleNamespace(
        data=[SimpleNamespace(role=role, content=list(blocks))]
    )


# ── Session primitives ───────────────────────────────────


async def test_create_persona_passes_persona_fields(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    persona = ReviewerPersona(
        name="Naggy", instructions="Check docs.", model="gpt-4o"
    )

    assert await client.create_persona(persona) == "asst_1"
    sdk.beta.assistants.create.assert_awaited_once_with(
        name="Naggy", instructions="Check docs.", model="gpt-4o"
    )


async def test_thread_message_and_run(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    thread_id = await client.create_thread()
    await client.add_message(thread_id, "Fingerprint: abc")
    run_id = await client.start_run(thread_id, "asst_1")

    assert (thread_id, run_id) == ("thread_1", "run_1")
    sdk.beta.threads.messages.create.assert_awaited_once_with(
        thread_id="thread_1", role="user", content="Fingerprint: abc"
    )
    sdk.beta.threads.runs.create.assert_awaited_once_with(
        thread_id="thread_1", assistant_id="asst_1"
    )


async def test_delete_calls(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    await client.delete_persona("asst_1")
    await client.delete_thread("thread_1")

    sdk.beta.assistants.delete.assert_awaited_once_with(
        assistant_id="asst_1"
    )
    sdk.beta.threads.delete.assert_awaited_once_with(thread_id="thread_1")


@pytest.mark.parametrize("status", list(RunStatus))
async def test_run_status_maps_every_known_status(
    client: OpenAIReviewerClient, sdk: MagicMock, status: RunStatus
) -> None:
    sdk.beta.threads.runs.retrieve.return_value = SimpleNamespace(
        status=status.value
    )

    assert await client.run_status("thread_1", "run_1") == status


async def test_unknown_run_status_is_an_error(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.runs.retrieve.return_value = SimpleNamespace(
        status="sleeping"
    )

    with pytest.raises(ReviewerCallError, match="sleeping"):
        await client.run_status("thread_1", "run_1")


# ── Reply content ────────────────────────────────────────


async def test_latest_message_text(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.messages.list.return_value = _reply(
        SimpleNamespace(type="text", text=SimpleNamespace(value="{}"))
    )

    assert await client.latest_message("thread_1") == TextContent("{}")
    sdk.beta.threads.messages.list.assert_awaited_once_with(
        thread_id="thread_1", order="desc", limit=1
    )


async def test_latest_message_refusal(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.messages.list.return_value = _reply(
        SimpleNamespace(type="refusal", refusal="No.")
    )

    assert await client.latest_message("thread_1") == RefusalContent("No.")


async def test_latest_message_image_is_unsupported(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.messages.list.return_value = _reply(
        SimpleNamespace(type="image_file", image_file=SimpleNamespace())
    )

    content = await client.latest_message("thread_1")
    assert content == UnsupportedContent("image_file")


async def test_latest_message_without_reply(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.messages.list.return_value = _reply(
        SimpleNamespace(type="text", text=SimpleNamespace(value="hi")),
        role="user",
    )

    with pytest.raises(ReviewerCallError, match="no reviewer reply"):
        await client.latest_message("thread_1")


async def test_latest_message_empty_thread(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.messages.list.return_value = SimpleNamespace(data=[])

    with pytest.raises(ReviewerCallError, match="no messages"):
        await client.latest_message("thread_1")


# ── Failure handling ─────────────────────────────────────


async def test_sdk_error_is_wrapped_with_status(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.create.side_effect = _server_error()

    with pytest.raises(ReviewerCallError) as exc_info:
        await client.create_thread()

    assert exc_info.value.status_code == 500
    assert classify_error(exc_info.value) == ErrorClass.SERVER
    assert sdk.beta.threads.create.await_count == 1


async def test_rate_limit_is_retried(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.create.side_effect = [
        _rate_limited(),
        SimpleNamespace(id="thread_9"),
    ]

    assert await client.create_thread() == "thread_9"
    assert sdk.beta.threads.create.await_count == 2


async def test_rate_limit_gives_up_after_retries(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.create.side_effect = _rate_limited()

    with pytest.raises(ReviewerCallError) as exc_info:
        await client.create_thread()

    assert exc_info.value.status_code == 429
    assert classify_error(exc_info.value) == ErrorClass.TRANSIENT
    assert sdk.beta.threads.create.await_count == 3


async def test_rate_limits_do_not_open_the_circuit(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.create.side_effect = _rate_limited()
    for _ in range(CB_REVIEWER_FAILURE_THRESHOLD + 1):
        with pytest.raises(ReviewerCallError, match="Rate limit"):
            await client.create_thread()


async def test_circuit_opens_after_repeated_failures(
    client: OpenAIReviewerClient, sdk: MagicMock
) -> None:
    sdk.beta.threads.create.side_effect = _server_error()
    for _ in range(CB_REVIEWER_FAILURE_THRESHOLD):
        with pytest.raises(ReviewerCallError, match="server had an error"):
            await client.create_thread()

    with pytest.raises(ReviewerCallError, match="circuit is open"):
        await client.create_thread()
    assert sdk.beta.threads.create.await_count == CB_REVIEWER_FAILURE_THRESHOLD


async def test_close(client: OpenAIReviewerClient, sdk: MagicMock) -> None:
    await client.close()
    sdk.close.assert_awaited_once()


# ── Construction ─────────────────────────────────────────


def test_from_settings_requires_api_key(settings: Settings) -> None:
    settings = settings.model_copy(update={"openai_api_key": ""})

    with pytest.raises(ReviewerConfigError, match="OPENAI_API_KEY"):
        OpenAIReviewerClient.from_settings(settings)


def test_from_settings_builds_client(settings: Settings) -> None:
    client = OpenAIReviewerClient.from_settings(settings)
    assert isinstance(client, OpenAIReviewerClient)
