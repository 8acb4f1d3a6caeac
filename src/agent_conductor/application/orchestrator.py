"""Agent orchestration loop.

Flow: guardrail(input) → load history → analyze intent → list tools →
bounded loop { next step → guardrail(action) → execute or synthesize a
rejection → append } → synthesize → guardrail(output) → persist history →
AgentResponse.

Every expected failure is returned as ``Result.success(AgentResponse)`` with an
error-carrying response tagged with the failing stage; only an unexpected
exception becomes ``Result.failure(AGENT_UNKNOWN_ERROR, ...)``.

Dependencies are injected (ports only); this module never imports adapters
from ``infrastructure`` apart from the tracer.
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, List, Optional

from agent_conductor.config import AgentConfig
from agent_conductor.domain import (
    AgentErrorCodes,
    AgentResponse,
    AgentSession,
    GuardrailErrorCodes,
    ResponseType,
    Result,
    ResultError,
    ToolCall,
    ToolDefinition,
    ToolExecution,
    UserRequest,
    new_session_id,
)
from agent_conductor.application.history_analytics import successful
from agent_conductor.application.ports import Guardrail, LongTermMemory, ReasoningService, ToolService
from agent_conductor.application.retry_policy import DEFAULT_RETRY_POLICY, RetryPolicy
from agent_conductor.infrastructure.telemetry import get_tracer

logger = logging.getLogger(__name__)

STAGE_INPUT = "Input failed validation."
STAGE_LOAD_HISTORY = "Failed to load session history."
STAGE_INTENT = "Failed to analyze user intent."
STAGE_CATALOG = "Failed to retrieve available tools."
STAGE_NEXT_STEP = "Could not determine next step."
STAGE_SYNTHESIS = "Failed to synthesize final response."
STAGE_OUTPUT = "Final response failed validation."
STAGE_SAVE_HISTORY = "Failed to persist session history."
STAGE_CANCELLED = "Operation was cancelled."

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred during processing."


class RunState(str, Enum):
    CREATED = "created"
    INPUT_VALIDATED = "input_validated"
    INTENT_ANALYZED = "intent_analyzed"
    ITERATING = "iterating"
    SYNTHESIZING = "synthesizing"
    OUTPUT_VALIDATED = "output_validated"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class _Run:
    """Mutable bookkeeping for one run; never shared between runs."""
    session_id: str
    started: float = field(default_factory=time.monotonic)
    state: RunState = RunState.CREATED
    iterations: int = 0
    successes: int = 0
    failures: int = 0

    @property
    def duration_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000.0


def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class AgentOrchestrator:
    """Runs one user request through the reason/act loop.

    Args:
        reasoning: Intent analysis, next-step and synthesis (``ReasoningService`` port).
        tools: Tool catalog and invocation (``ToolService`` port).
        guardrail: Input/action/output gate (``Guardrail`` port).
        memory: Session history store (``LongTermMemory`` port).
        config: Loop limits; ``max_iterations`` is always finite.
        retry_policy: Classification used when ``config.max_tool_retries > 0``.
        sleep: Awaitable used between tool retries (injectable for tests).
    """

    def __init__(
        self,
        reasoning: ReasoningService,
        tools: ToolService,
        guardrail: Guardrail,
        memory: LongTermMemory,
        *,
        config: Optional[AgentConfig] = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._reasoning = reasoning
        self._tools = tools
        self._guardrail = guardrail
        self._memory = memory
        self._config = config or AgentConfig()
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._sessions: Deque[AgentSession] = deque(maxlen=self._config.session_history_limit)
        self._session_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_request(
        self,
        request: UserRequest,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[AgentResponse]:
        """Run ``request`` to completion.

        Returns ``Result.success`` for every completed or stage-failed run (the
        response's ``success`` flag tells them apart) and ``Result.failure`` with
        ``AGENT_UNKNOWN_ERROR`` only when an unexpected exception escaped.
        """
        if request.session_id is None:
            request = request.with_session(new_session_id())
        run = _Run(session_id=request.session_id)
        logger.info("Processing request session=%s", run.session_id)

        tracer = get_tracer()
        with tracer.start_as_current_span("conductor.process_request") as span:
            span.set_attribute("conductor.session_id", run.session_id)
            try:
                if self._config.serialize_session_runs:
                    lock = self._session_lock(run.session_id)
                    async with lock:
                        response = await self._run(request, run, cancel_event)
                else:
                    response = await self._run(request, run, cancel_event)
            except Exception as exc:
                logger.exception(
                    "Unexpected error while processing request session=%s state=%s",
                    run.session_id, run.state.value,
                )
                span.record_exception(exc)
                failed_in = run.state
                self._transition(run, RunState.FAILED)
                return Result.failure(
                    AgentErrorCodes.UNKNOWN,
                    UNEXPECTED_ERROR_MESSAGE,
                    {
                        "state": failed_in.value,
                        "exception_type": type(exc).__name__,
                        "session_id": run.session_id,
                    },
                )
            finally:
                span.set_attribute("conductor.state", run.state.value)
                span.set_attribute("conductor.iterations", run.iterations)

        logger.info(
            "Finished request session=%s state=%s iterations=%d duration_ms=%.1f",
            run.session_id, run.state.value, run.iterations, run.duration_ms,
        )
        return Result.success(response)

    async def continue_conversation(
        self,
        request: UserRequest,
        previous_session_id: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Result[AgentResponse]:
        """Process ``request`` as a continuation of ``previous_session_id``."""
        if not previous_session_id or not previous_session_id.strip():
            return Result.failure(
                AgentErrorCodes.VALIDATION_FAILED,
                "previous_session_id must not be blank",
            )
        return await self.process_request(
            request.with_session(previous_session_id), cancel_event=cancel_event,
        )

    def get_session_history(self, limit: int = 10) -> Result[List[AgentSession]]:
        """Most recent completed sessions first."""
        if limit < 1:
            return Result.failure(
                AgentErrorCodes.VALIDATION_FAILED,
                f"limit must be >= 1, got {limit}",
                {"limit": limit},
            )
        return Result.success(list(reversed(self._sessions))[:limit])

    # ------------------------------------------------------------------
    # Run stages
    # ------------------------------------------------------------------

    async def _run(
        self,
        request: UserRequest,
        run: _Run,
        cancel_event: Optional[asyncio.Event],
    ) -> AgentResponse:
        session_id = run.session_id

        # Created → InputValidated
        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        checked = await self._guardrail.validate_input(request.content)
        if checked.is_failure:
            logger.warning("Input rejected session=%s: %s", session_id, checked.error)
            return self._fail(run, checked.error, STAGE_INPUT)
        request = replace(request, content=checked.value)
        self._transition(run, RunState.INPUT_VALIDATED)

        # InputValidated → IntentAnalyzed
        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        try:
            history: List[Result[ToolExecution]] = list(await self._memory.load_history(session_id))
        except Exception as exc:
            logger.warning("Loading history failed session=%s: %s", session_id, exc)
            return self._fail(
                run,
                ResultError(
                    code=AgentErrorCodes.HISTORY_LOAD_FAILED,
                    message=str(exc) or type(exc).__name__,
                    metadata={"exception_type": type(exc).__name__},
                ),
                STAGE_LOAD_HISTORY,
            )
        loaded = len(history)
        logger.debug("Loaded %d prior entries session=%s", loaded, session_id)

        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        intent_result = await self._reasoning.analyze_intent(request)
        if intent_result.is_failure:
            return self._fail(run, intent_result.error, STAGE_INTENT)
        intent = intent_result.value
        logger.debug(
            "Intent session=%s type=%s confidence=%s",
            session_id, intent.type.value, intent.confidence.value,
        )
        self._transition(run, RunState.INTENT_ANALYZED)

        # IntentAnalyzed → Iterating
        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        catalog_result = await self._tools.list_tools()
        if catalog_result.is_failure:
            return self._fail(run, catalog_result.error, STAGE_CATALOG)
        catalog: List[ToolDefinition] = list(catalog_result.value)
        self._transition(run, RunState.ITERATING)

        executed: List[ToolCall] = []
        cap_reached = False
        while True:
            if run.iterations >= self._config.max_iterations:
                cap_reached = True
                logger.info(
                    "Iteration cap reached session=%s cap=%d",
                    session_id, self._config.max_iterations,
                )
                break
            if _is_cancelled(cancel_event):
                return self._cancelled(run)
            step = await self._reasoning.determine_next_step(intent, catalog, tuple(history))
            if step.is_failure:
                return self._fail(run, step.error, STAGE_NEXT_STEP)
            call = step.value
            if call is None:
                logger.debug("Reasoning signalled completion session=%s", session_id)
                break
            if call.session_id is None:
                call = call.with_session(session_id)

            outcome = await self._act(call, run, cancel_event)
            if outcome is None:
                return self._cancelled(run)
            history.append(outcome)
            executed.append(call)
            run.iterations += 1
            if outcome.is_success:
                run.successes += 1
            else:
                run.failures += 1

        # Iterating → Synthesizing
        self._transition(run, RunState.SYNTHESIZING)
        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        synthesized = await self._reasoning.synthesize_response(intent, successful(history))
        if synthesized.is_failure:
            return self._fail(run, synthesized.error, STAGE_SYNTHESIS)

        # Synthesizing → OutputValidated
        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        output = await self._guardrail.validate_output(synthesized.value)
        if output.is_failure:
            logger.warning("Output rejected session=%s: %s", session_id, output.error)
            return self._fail(run, output.error, STAGE_OUTPUT)
        self._transition(run, RunState.OUTPUT_VALIDATED)

        # OutputValidated → Completed
        if _is_cancelled(cancel_event):
            return self._cancelled(run)
        try:
            await self._memory.save_history(session_id, tuple(history))
        except Exception as exc:
            logger.warning("Saving history failed session=%s: %s", session_id, exc)
            return self._fail(
                run,
                ResultError(
                    code=AgentErrorCodes.HISTORY_SAVE_FAILED,
                    message=str(exc) or type(exc).__name__,
                    metadata={"exception_type": type(exc).__name__},
                ),
                STAGE_SAVE_HISTORY,
            )

        if run.iterations == 0:
            response_type = ResponseType.INFORMATION
        elif run.failures == 0:
            response_type = ResponseType.SUCCESS
        else:
            response_type = ResponseType.WARNING

        response = AgentResponse.create_success(
            output.value,
            type=response_type,
            metadata={
                "session_id": session_id,
                "intent_type": intent.type.value,
                "intent_confidence": intent.confidence.value,
                "iterations": run.iterations,
                "tool_executions": run.iterations,
                "successful_executions": run.successes,
                "failed_executions": run.failures,
                "history_length": len(history),
                "loaded_history_length": loaded,
                "duration_ms": run.duration_ms,
                "iteration_cap_reached": cap_reached,
            },
        )
        self._sessions.append(AgentSession(
            session_id=session_id,
            request=request,
            intent=intent,
            tool_calls=tuple(executed),
            response=response,
            context=dict(request.context),
        ))
        self._transition(run, RunState.COMPLETED)
        return response

    async def _act(
        self,
        call: ToolCall,
        run: _Run,
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[Result[ToolExecution]]:
        """Gate and execute one call.  ``None`` means cancellation was observed."""
        tracer = get_tracer()
        with tracer.start_as_current_span("conductor.tool_call") as span:
            span.set_attribute("conductor.session_id", run.session_id)
            span.set_attribute("conductor.tool_name", call.tool_name)
            span.set_attribute("conductor.iteration", run.iterations + 1)

            if _is_cancelled(cancel_event):
                return None
            allowed = await self._guardrail.is_action_allowed(call)
            if allowed.is_failure or not allowed.value:
                outcome = self._blocked(call, allowed)
                logger.warning(
                    "Tool call blocked session=%s tool=%s: %s",
                    run.session_id, call.tool_name, outcome.error.message,
                )
                span.set_attribute("conductor.blocked", True)
                span.set_attribute("conductor.outcome", outcome.error.code)
                return outcome

            if _is_cancelled(cancel_event):
                return None
            logger.debug("Executing tool=%s session=%s", call.tool_name, run.session_id)
            outcome = await self._execute_with_retry(call, cancel_event)
            if outcome.is_failure:
                logger.warning(
                    "Tool failed session=%s tool=%s: %s",
                    run.session_id, call.tool_name, outcome.error,
                )
                span.set_attribute("conductor.outcome", outcome.error.code)
            else:
                span.set_attribute("conductor.outcome", "success")
            return outcome

    async def _execute_with_retry(
        self,
        call: ToolCall,
        cancel_event: Optional[asyncio.Event],
    ) -> Result[ToolExecution]:
        outcome = await self._tools.execute_tool(call)
        attempt = 0
        while (
            outcome.is_failure
            and attempt < self._config.max_tool_retries
            and self._retry_policy.is_retryable(outcome.error.code)
        ):
            attempt += 1
            delay = self._retry_policy.retry_delay(outcome.error.code, attempt)
            logger.info(
                "Retrying tool=%s after %s (attempt %d/%d, delay %.1fs)",
                call.tool_name, outcome.error.code, attempt, self._config.max_tool_retries, delay,
            )
            if _is_cancelled(cancel_event):
                break
            await self._sleep(delay)
            if _is_cancelled(cancel_event):
                break
            outcome = await self._tools.execute_tool(call)
        if attempt and outcome.is_failure:
            return Result.from_error(outcome.error.with_metadata(retry_attempts=attempt))
        return outcome

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _blocked(call: ToolCall, allowed: Result[bool]) -> Result[ToolExecution]:
        if allowed.is_failure:
            error = allowed.error
            return ToolExecution.failure(
                call, error.code, error.message,
                metadata={**error.metadata, "blocked_by_guardrail": True},
            )
        return ToolExecution.failure(
            call,
            GuardrailErrorCodes.ACTION_BLOCKED,
            f"Tool '{call.tool_name}' is not allowed by policy",
            metadata={"blocked_by_guardrail": True},
        )

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    @staticmethod
    def _transition(run: _Run, state: RunState) -> None:
        logger.debug("session=%s state %s -> %s", run.session_id, run.state.value, state.value)
        run.state = state

    def _fail(self, run: _Run, error: ResultError, stage: str) -> AgentResponse:
        failed_in = run.state
        self._transition(run, RunState.FAILED)
        response_type = ResponseType.WARNING if run.successes > 0 else ResponseType.ERROR
        logger.info(
            "Run failed session=%s state=%s stage=%r code=%s",
            run.session_id, failed_in.value, stage, error.code,
        )
        return AgentResponse.create_error(
            error,
            stage,
            type=response_type,
            metadata={
                "session_id": run.session_id,
                "failed_state": failed_in.value,
                "iterations": run.iterations,
                "successful_executions": run.successes,
                "failed_executions": run.failures,
                "duration_ms": run.duration_ms,
            },
        )

    def _cancelled(self, run: _Run) -> AgentResponse:
        return self._fail(
            run,
            ResultError(
                code=AgentErrorCodes.OPERATION_CANCELLED,
                message="Cancellation was requested",
                metadata={"state": run.state.value},
            ),
            STAGE_CANCELLED,
        )


__all__ = [
    "AgentOrchestrator",
    "RunState",
    "STAGE_CANCELLED",
    "STAGE_CATALOG",
    "STAGE_INPUT",
    "STAGE_INTENT",
    "STAGE_LOAD_HISTORY",
    "STAGE_NEXT_STEP",
    "STAGE_OUTPUT",
    "STAGE_SAVE_HISTORY",
    "STAGE_SYNTHESIS",
    "UNEXPECTED_ERROR_MESSAGE",
]
