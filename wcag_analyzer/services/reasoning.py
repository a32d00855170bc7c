"""Reasoning delegates: single-call chat and multi-turn assistant transports.

Both strategies expose ``submit(request) -> str`` and return the raw answer
text; turning that text into findings is the result normaliser's job.

Assistant runs move through an explicit state machine::

    CREATED → THREAD_OPENED → MESSAGE_SUBMITTED → RUN_IN_PROGRESS
        → RUN_COMPLETED | RUN_FAILED | RUN_EXPIRED

``RUN_IN_PROGRESS`` is polled through an injectable ``sleep``/``clock`` pair
so tests can drive time, and so that cancelling the calling task abandons the
poll loop at the next ``await``.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import openai
from openai import AsyncOpenAI

from wcag_analyzer.services.errors import AnalysisTimeoutError, EmptyContentError, ProviderError
from wcag_analyzer.services.prompt_builder import ProviderRequest

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "WCAG Analyzer"


class ReasoningDelegate(Protocol):
    async def submit(self, request: ProviderRequest) -> str:
        ...


def _require_content(request: ProviderRequest) -> None:
    if not request.user_content or not request.user_content.strip():
        raise EmptyContentError("There is no content to analyse.")


class ChatReasoningDelegate:
    """One stateless chat-completion request per analysis."""

    def __init__(self, client: AsyncOpenAI, model: str) -> None:
        self._client = client
        self._model = model

    async def submit(self, request: ProviderRequest) -> str:
        _require_content(request)

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": request.system_instruction},
                    {"role": "user", "content": request.user_content},
                ],
                response_format={"type": "json_object"},
                temperature=0,
            )
        except openai.APITimeoutError as exc:
            logger.error("Chat request timed out")
            raise AnalysisTimeoutError("The reasoning service timed out.") from exc
        except openai.APIError as exc:
            logger.error("Chat request failed: %s", exc)
            raise ProviderError(f"Reasoning service error: {exc}") from exc

        if not completion.choices:
            raise ProviderError("The reasoning service returned no choices.")
        answer = completion.choices[0].message.content or ""
        if not answer.strip():
            raise ProviderError("The reasoning service returned an empty answer.")
        return answer


# ---------------------------------------------------------------------------
# Assistant mode
# ---------------------------------------------------------------------------

class RunState(str, Enum):
    CREATED = "created"
    THREAD_OPENED = "thread_opened"
    MESSAGE_SUBMITTED = "message_submitted"
    RUN_IN_PROGRESS = "run_in_progress"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"
    RUN_EXPIRED = "run_expired"


_TRANSITIONS = {
    RunState.CREATED: {RunState.THREAD_OPENED},
    RunState.THREAD_OPENED: {RunState.MESSAGE_SUBMITTED},
    RunState.MESSAGE_SUBMITTED: {RunState.RUN_IN_PROGRESS},
    RunState.RUN_IN_PROGRESS: {
        RunState.RUN_IN_PROGRESS,
        RunState.RUN_COMPLETED,
        RunState.RUN_FAILED,
        RunState.RUN_EXPIRED,
    },
    RunState.RUN_COMPLETED: set(),
    RunState.RUN_FAILED: set(),
    RunState.RUN_EXPIRED: set(),
}

# Provider run statuses, grouped by the state they map to
_PENDING_STATUSES = {"queued", "in_progress", "cancelling"}
_COMPLETED_STATUSES = {"completed"}
_EXPIRED_STATUSES = {"expired"}


def run_state_for_status(status: str) -> RunState:
    """Map a provider run status onto the terminal/non-terminal :class:`RunState`."""
    if status in _PENDING_STATUSES:
        return RunState.RUN_IN_PROGRESS
    if status in _COMPLETED_STATUSES:
        return RunState.RUN_COMPLETED
    if status in _EXPIRED_STATUSES:
        return RunState.RUN_EXPIRED
    # failed, cancelled, incomplete, requires_action (no tools are registered)
    return RunState.RUN_FAILED


class AssistantSession:
    """Per-request record of one assistant exchange."""

    def __init__(self) -> None:
        self.state = RunState.CREATED
        self.thread_id: Optional[str] = None
        self.run_id: Optional[str] = None

    def transition(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal assistant transition {self.state.value} → {new_state.value}")
        self.state = new_state


class AssistantReasoningDelegate:
    """Thread/message/run exchange with an assistant, polled until the run ends."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        assistant_id: Optional[str] = None,
        poll_interval: float = 1.0,
        max_wait: float = 120.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._model = model
        self._assistant_id = assistant_id
        self._poll_interval = poll_interval
        self._max_wait = max_wait
        self._sleep = sleep
        self._clock = clock
        self._assistant_lock = asyncio.Lock()

    async def submit(self, request: ProviderRequest) -> str:
        _require_content(request)

        session = AssistantSession()
        try:
            return await self._drive(session, request)
        except openai.APITimeoutError as exc:
            logger.error("Assistant request timed out", extra={"state": session.state.value})
            raise AnalysisTimeoutError("The reasoning service timed out.") from exc
        except openai.APIError as exc:
            logger.error("Assistant request failed in state %s: %s", session.state.value, exc)
            raise ProviderError(f"Reasoning service error: {exc}") from exc

    async def _ensure_assistant(self, instructions: str) -> str:
        async with self._assistant_lock:
            if self._assistant_id is None:
                assistant = await self._client.beta.assistants.create(
                    model=self._model,
                    name=ASSISTANT_NAME,
                    instructions=instructions,
                )
                self._assistant_id = assistant.id
                logger.info("Created assistant", extra={"assistant_id": assistant.id})
            return self._assistant_id

    async def _drive(self, session: AssistantSession, request: ProviderRequest) -> str:
        assistant_id = await self._ensure_assistant(request.system_instruction)
        threads = self._client.beta.threads

        if request.thread_id:
            session.thread_id = request.thread_id
        else:
            thread = await threads.create()
            session.thread_id = thread.id
        session.transition(RunState.THREAD_OPENED)

        await threads.messages.create(session.thread_id, role="user", content=request.user_content)
        session.transition(RunState.MESSAGE_SUBMITTED)

        run = await threads.runs.create(
            session.thread_id,
            assistant_id=assistant_id,
            instructions=request.system_instruction,
        )
        session.run_id = run.id
        session.transition(RunState.RUN_IN_PROGRESS)
        logger.info(
            "Assistant run started",
            extra={"thread_id": session.thread_id, "run_id": session.run_id},
        )

        run = await self._poll(session, run)

        if session.state == RunState.RUN_EXPIRED:
            raise AnalysisTimeoutError("The assistant run expired before completing.")
        if session.state == RunState.RUN_FAILED:
            raise ProviderError(_run_failure_message(run))

        return await self._read_answer(session)

    async def _poll(self, session: AssistantSession, run):
        deadline = self._clock() + self._max_wait
        while True:
            state = run_state_for_status(run.status)
            session.transition(state)
            if state != RunState.RUN_IN_PROGRESS:
                return run

            remaining = deadline - self._clock()
            if remaining <= 0:
                session.transition(RunState.RUN_EXPIRED)
                await self._cancel(session)
                raise AnalysisTimeoutError(
                    f"The assistant run did not complete within {self._max_wait:g} seconds."
                )

            await self._sleep(min(self._poll_interval, remaining))
            run = await self._client.beta.threads.runs.retrieve(
                session.run_id, thread_id=session.thread_id
            )

    async def _cancel(self, session: AssistantSession) -> None:
        try:
            await self._client.beta.threads.runs.cancel(session.run_id, thread_id=session.thread_id)
        except openai.APIError as exc:
            logger.warning("Could not cancel expired run %s: %s", session.run_id, exc)

    async def _read_answer(self, session: AssistantSession) -> str:
        page = await self._client.beta.threads.messages.list(
            session.thread_id,
            run_id=session.run_id,
            order="desc",
            limit=20,
        )
        for message in page.data:
            if message.role != "assistant":
                continue
            parts = [
                block.text.value
                for block in message.content
                if getattr(block, "type", None) == "text"
            ]
            answer = "\n".join(parts)
            if answer.strip():
                return answer
        raise ProviderError("The assistant run completed without an answer.")


def _run_failure_message(run) -> str:
    last_error = getattr(run, "last_error", None)
    if last_error is not None and getattr(last_error, "message", None):
        return f"Assistant run {run.status}: {last_error.message}"
    return f"Assistant run ended with status '{run.status}'."
