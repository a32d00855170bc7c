"""Tests for the chat and assistant reasoning delegates."""

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

from wcag_analyzer.services.errors import AnalysisTimeoutError, EmptyContentError, ProviderError
from wcag_analyzer.services.prompt_builder import AnalysisMode, ProviderRequest
from wcag_analyzer.services.reasoning import (
    AssistantReasoningDelegate,
    AssistantSession,
    ChatReasoningDelegate,
    RunState,
    run_state_for_status,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

_ANSWER = '{"items": [], "explanation": "No issues."}'


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _run(status, last_error=None):
    return SimpleNamespace(id="run_1", status=status, last_error=last_error)


def _messages(*messages):
    return SimpleNamespace(data=list(messages))


def _message(role, *texts):
    return SimpleNamespace(
        role=role,
        content=[SimpleNamespace(type="text", text=SimpleNamespace(value=t)) for t in texts],
    )


def _request(mode=AnalysisMode.ASSISTANT, thread_id=None, content="CONTENT TO EVALUATE\n<p>x</p>"):
    return ProviderRequest(
        system_instruction="Audit this.",
        user_content=content,
        mode=mode,
        thread_id=thread_id,
    )


class FakeClock:
    """Monotonic clock advanced only by the injected sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def time(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class TestChatReasoningDelegate:
    @pytest.mark.asyncio
    async def test_returns_answer_text(self, openai_client):
        openai_client.chat.completions.create.return_value = _completion(_ANSWER)
        delegate = ChatReasoningDelegate(openai_client, "gpt-4o-mini")

        assert await delegate.submit(_request(AnalysisMode.CHAT)) == _ANSWER

        messages = openai_client.chat.completions.create.await_args.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "Audit this."}
        assert messages[1]["role"] == "user"

    @pytest.mark.asyncio
    async def test_blank_content_makes_no_call(self, openai_client):
        delegate = ChatReasoningDelegate(openai_client, "gpt-4o-mini")

        with pytest.raises(EmptyContentError):
            await delegate.submit(_request(AnalysisMode.CHAT, content="  "))

        openai_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_answer_is_provider_error(self, openai_client):
        openai_client.chat.completions.create.return_value = _completion(None)
        delegate = ChatReasoningDelegate(openai_client, "gpt-4o-mini")

        with pytest.raises(ProviderError, match="empty answer"):
            await delegate.submit(_request(AnalysisMode.CHAT))

    @pytest.mark.asyncio
    async def test_no_choices_is_provider_error(self, openai_client):
        openai_client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        delegate = ChatReasoningDelegate(openai_client, "gpt-4o-mini")

        with pytest.raises(ProviderError, match="no choices"):
            await delegate.submit(_request(AnalysisMode.CHAT))

    @pytest.mark.asyncio
    async def test_api_error_is_provider_error(self, openai_client):
        openai_client.chat.completions.create.side_effect = openai.APIConnectionError(request=_REQUEST)
        delegate = ChatReasoningDelegate(openai_client, "gpt-4o-mini")

        with pytest.raises(ProviderError):
            await delegate.submit(_request(AnalysisMode.CHAT))

    @pytest.mark.asyncio
    async def test_timeout_is_analysis_timeout(self, openai_client):
        openai_client.chat.completions.create.side_effect = openai.APITimeoutError(request=_REQUEST)
        delegate = ChatReasoningDelegate(openai_client, "gpt-4o-mini")

        with pytest.raises(AnalysisTimeoutError):
            await delegate.submit(_request(AnalysisMode.CHAT))


# ---------------------------------------------------------------------------
# Assistant state machine
# ---------------------------------------------------------------------------

class TestRunStateForStatus:
    @pytest.mark.parametrize("status", ["queued", "in_progress", "cancelling"])
    def test_pending(self, status):
        assert run_state_for_status(status) == RunState.RUN_IN_PROGRESS

    def test_completed(self):
        assert run_state_for_status("completed") == RunState.RUN_COMPLETED

    def test_expired(self):
        assert run_state_for_status("expired") == RunState.RUN_EXPIRED

    @pytest.mark.parametrize("status", ["failed", "cancelled", "incomplete", "requires_action", "unknown"])
    def test_everything_else_fails(self, status):
        assert run_state_for_status(status) == RunState.RUN_FAILED


class TestAssistantSession:
    def test_illegal_transition_raises(self):
        session = AssistantSession()
        with pytest.raises(RuntimeError):
            session.transition(RunState.RUN_COMPLETED)

    def test_terminal_state_is_final(self):
        session = AssistantSession()
        for state in (
            RunState.THREAD_OPENED,
            RunState.MESSAGE_SUBMITTED,
            RunState.RUN_IN_PROGRESS,
            RunState.RUN_COMPLETED,
        ):
            session.transition(state)
        with pytest.raises(RuntimeError):
            session.transition(RunState.RUN_IN_PROGRESS)


class TestAssistantReasoningDelegate:
    def _delegate(self, client, clock, **kwargs):
        kwargs.setdefault("poll_interval", 1.0)
        kwargs.setdefault("max_wait", 10.0)
        return AssistantReasoningDelegate(
            client, "gpt-4o-mini", sleep=clock.sleep, clock=clock.time, **kwargs
        )

    @pytest.mark.asyncio
    async def test_completed_run_returns_latest_assistant_message(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("queued")
        openai_client.beta.threads.runs.retrieve.side_effect = [_run("in_progress"), _run("completed")]
        openai_client.beta.threads.messages.list.return_value = _messages(
            _message("assistant", _ANSWER),
            _message("user", "CONTENT TO EVALUATE"),
        )

        answer = await self._delegate(openai_client, clock).submit(_request())

        assert answer == _ANSWER
        assert clock.sleeps == [1.0, 1.0]
        openai_client.beta.threads.create.assert_awaited_once()
        openai_client.beta.threads.messages.create.assert_awaited_once_with(
            "thread_1", role="user", content="CONTENT TO EVALUATE\n<p>x</p>"
        )
        run_kwargs = openai_client.beta.threads.runs.create.await_args.kwargs
        assert run_kwargs["assistant_id"] == "asst_1"
        list_kwargs = openai_client.beta.threads.messages.list.await_args.kwargs
        assert list_kwargs["run_id"] == "run_1"

    @pytest.mark.asyncio
    async def test_assistant_is_created_once(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("completed")
        openai_client.beta.threads.messages.list.return_value = _messages(_message("assistant", _ANSWER))
        delegate = self._delegate(openai_client, clock)

        await delegate.submit(_request())
        await delegate.submit(_request())

        openai_client.beta.assistants.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_configured_assistant_is_reused(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("completed")
        openai_client.beta.threads.messages.list.return_value = _messages(_message("assistant", _ANSWER))

        await self._delegate(openai_client, clock, assistant_id="asst_cfg").submit(_request())

        openai_client.beta.assistants.create.assert_not_called()
        assert openai_client.beta.threads.runs.create.await_args.kwargs["assistant_id"] == "asst_cfg"

    @pytest.mark.asyncio
    async def test_existing_thread_is_reused(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("completed")
        openai_client.beta.threads.messages.list.return_value = _messages(_message("assistant", _ANSWER))

        await self._delegate(openai_client, clock).submit(_request(thread_id="thread_42"))

        openai_client.beta.threads.create.assert_not_called()
        assert openai_client.beta.threads.messages.create.await_args.args[0] == "thread_42"

    @pytest.mark.asyncio
    async def test_failed_run_reports_last_error(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("queued")
        openai_client.beta.threads.runs.retrieve.return_value = _run(
            "failed", last_error=SimpleNamespace(code="server_error", message="model overloaded")
        )

        with pytest.raises(ProviderError, match="model overloaded"):
            await self._delegate(openai_client, clock).submit(_request())

        openai_client.beta.threads.messages.list.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_expiry_is_timeout(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("expired")

        with pytest.raises(AnalysisTimeoutError):
            await self._delegate(openai_client, clock).submit(_request())

        openai_client.beta.threads.messages.list.assert_not_called()

    @pytest.mark.asyncio
    async def test_max_wait_exceeded_cancels_run(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("queued")
        openai_client.beta.threads.runs.retrieve.return_value = _run("in_progress")

        with pytest.raises(AnalysisTimeoutError, match="3 seconds"):
            await self._delegate(openai_client, clock, max_wait=3.0).submit(_request())

        assert openai_client.beta.threads.runs.retrieve.await_count == 3
        assert clock.now == pytest.approx(3.0)
        openai_client.beta.threads.runs.cancel.assert_awaited_once_with("run_1", thread_id="thread_1")
        openai_client.beta.threads.messages.list.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_failure_still_times_out(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("in_progress")
        openai_client.beta.threads.runs.retrieve.return_value = _run("in_progress")
        openai_client.beta.threads.runs.cancel.side_effect = openai.APIConnectionError(request=_REQUEST)

        with pytest.raises(AnalysisTimeoutError):
            await self._delegate(openai_client, clock, max_wait=1.0).submit(_request())

    @pytest.mark.asyncio
    async def test_final_sleep_is_capped_by_remaining_budget(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("in_progress")
        openai_client.beta.threads.runs.retrieve.return_value = _run("in_progress")

        with pytest.raises(AnalysisTimeoutError):
            await self._delegate(openai_client, clock, poll_interval=2.0, max_wait=3.0).submit(_request())

        assert clock.sleeps == [2.0, 1.0]

    @pytest.mark.asyncio
    async def test_completed_without_answer_is_provider_error(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("completed")
        openai_client.beta.threads.messages.list.return_value = _messages(_message("user", "hello"))

        with pytest.raises(ProviderError, match="without an answer"):
            await self._delegate(openai_client, clock).submit(_request())

    @pytest.mark.asyncio
    async def test_api_error_while_polling_is_provider_error(self, openai_client):
        clock = FakeClock()
        openai_client.beta.threads.runs.create.return_value = _run("queued")
        openai_client.beta.threads.runs.retrieve.side_effect = openai.APIConnectionError(request=_REQUEST)

        with pytest.raises(ProviderError):
            await self._delegate(openai_client, clock).submit(_request())

    @pytest.mark.asyncio
    async def test_blank_content_makes_no_call(self, openai_client):
        clock = FakeClock()

        with pytest.raises(EmptyContentError):
            await self._delegate(openai_client, clock).submit(_request(content=""))

        openai_client.beta.threads.create.assert_not_called()
        openai_client.beta.threads.runs.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancellation_abandons_polling(self, openai_client):
        async def cancelled_sleep(seconds):
            raise asyncio.CancelledError()

        openai_client.beta.threads.runs.create.return_value = _run("queued")
        delegate = AssistantReasoningDelegate(
            openai_client, "gpt-4o-mini", sleep=cancelled_sleep, clock=FakeClock().time
        )

        with pytest.raises(asyncio.CancelledError):
            await delegate.submit(_request())

        openai_client.beta.threads.runs.retrieve.assert_not_called()
        openai_client.beta.threads.messages.list.assert_not_called()
