"""Attempt orchestrator: retry state machine around one HTTP call.

States:
  INIT → ATTEMPTING → SUCCEEDED → SETTLED
                    ↘ FAILED_TERMINAL → SETTLED
                    ↘ BACKING_OFF → ATTEMPTING (loop)
                                  ↘ FAILED_TERMINAL

- One attempt in flight at a time; each attempt gets a fresh cancellation
  handle, a fresh timeout source and its own composed signal
- The caller signal composes into every attempt and every backoff wait
- Only the backoff policy decides whether a retryable failure is retried
- Exactly one value or one error settles the orchestration; timers and
  listeners are released on every path

Cancellation contract: ``current_cancellation_handle`` always returns the
handle of the attempt that started most recently. The handle of attempt 1
is allocated during INIT so a caller can abort before the first attempt
runs. A handle captured before a retry starts is stale afterwards:
aborting it no longer affects the orchestration. Re-read the property to
cancel whatever is running now. Aborting after settlement is a no-op.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Generator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx

from fetchguard.cancellation.composer import compose
from fetchguard.cancellation.handle import CancellationHandleCell
from fetchguard.classifier import (
    AttemptOutcome,
    AttemptTimedOut,
    OutcomeKind,
    Success,
    TransportFailed,
    UserCancelled,
    ValidationFailed,
    check_status,
    classify,
)
from fetchguard.codec.body import decode_body
from fetchguard.request import parse_options
from fetchguard.resilience.backoff import BackoffPolicy, GiveUp, sleep_unless_aborted
from fetchguard.resilience.timeout import TimeoutSource
from fetchguard.shared.errors import (
    AbortError,
    AttemptTimeoutError,
    ResponseDecodeError,
    TransportError,
    UserCancelledError,
    ValidationFailedError,
)
from fetchguard.shared.logging.error_handler import log_structured_error, redact_url
from fetchguard.shared.request_context import new_request_id, request_context

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from fetchguard.cancellation.composer import ComposedSignal
    from fetchguard.cancellation.signal import AbortController
    from fetchguard.ports.transport_port import TransportPort
    from fetchguard.request import FetchOptions

logger = logging.getLogger(__name__)


class OrchestratorState(enum.Enum):
    INIT = "init"
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"
    SETTLED = "settled"


_TRANSITIONS: set[tuple[OrchestratorState, OrchestratorState]] = {
    (OrchestratorState.INIT, OrchestratorState.ATTEMPTING),
    (OrchestratorState.ATTEMPTING, OrchestratorState.SUCCEEDED),
    (OrchestratorState.ATTEMPTING, OrchestratorState.FAILED_TERMINAL),
    (OrchestratorState.ATTEMPTING, OrchestratorState.BACKING_OFF),
    (OrchestratorState.BACKING_OFF, OrchestratorState.ATTEMPTING),
    (OrchestratorState.BACKING_OFF, OrchestratorState.FAILED_TERMINAL),
    (OrchestratorState.SUCCEEDED, OrchestratorState.SETTLED),
    (OrchestratorState.FAILED_TERMINAL, OrchestratorState.SETTLED),
}


class InvalidTransitionError(Exception):
    """Raised when the state machine is driven along an edge it does not have."""

    def __init__(self, from_state: OrchestratorState, to_state: OrchestratorState) -> None:
        super().__init__(f"Invalid transition: {from_state.value} → {to_state.value}")
        self.from_state = from_state
        self.to_state = to_state


@dataclass(frozen=True)
class StateTransition:
    """One recorded edge of the state machine."""

    attempt: int
    from_state: OrchestratorState
    to_state: OrchestratorState
    timestamp: datetime
    outcome: OutcomeKind | None = None


class AttemptOrchestrator:
    """Drives attempts until one value or one error settles the call."""

    def __init__(
        self,
        options: FetchOptions,
        *,
        transport: TransportPort,
        backoff: BackoffPolicy | None = None,
        request_id: str | None = None,
    ) -> None:
        self._options = options
        self._transport = transport
        self._backoff = backoff or BackoffPolicy(options.retry)
        self._request_id = request_id or new_request_id()
        self._handles = CancellationHandleCell()
        self._state = OrchestratorState.INIT
        self._attempts = 0
        self._history: list[StateTransition] = []
        self._handles.publish()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def history(self) -> list[StateTransition]:
        return list(self._history)

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def current_cancellation_handle(self) -> AbortController:
        return self._handles.snapshot()

    def _transition(self, to_state: OrchestratorState, outcome: OutcomeKind | None = None) -> None:
        if (self._state, to_state) not in _TRANSITIONS:
            raise InvalidTransitionError(self._state, to_state)
        self._history.append(
            StateTransition(
                attempt=self._attempts,
                from_state=self._state,
                to_state=to_state,
                timestamp=datetime.now(UTC),
                outcome=outcome,
            )
        )
        self._state = to_state

    def _log_context(self) -> dict[str, Any]:
        request = self._options.request
        return {
            "method": request.method,
            "url": redact_url(request.url),
            "attempts": self._attempts,
            "retries": self._backoff.retries,
        }

    async def run(self) -> Any:
        """Run attempts until settled; return the value or raise the error."""
        with request_context(self._request_id):
            try:
                return await self._run()
            except asyncio.CancelledError:
                if self._state in (OrchestratorState.ATTEMPTING, OrchestratorState.BACKING_OFF):
                    self._transition(OrchestratorState.FAILED_TERMINAL)
                raise
            finally:
                if self._state in (OrchestratorState.SUCCEEDED, OrchestratorState.FAILED_TERMINAL):
                    self._transition(OrchestratorState.SETTLED)

    async def _run(self) -> Any:
        while True:
            # Attempt 1 runs under the handle published during INIT.
            controller = self._handles.snapshot() if self._attempts == 0 else self._handles.publish()
            self._attempts += 1
            self._transition(OrchestratorState.ATTEMPTING)
            logger.debug("Attempt %d started", self._attempts)

            outcome = await self._attempt(controller)
            logger.debug("Attempt %d finished: %s", self._attempts, outcome.kind.value)

            if isinstance(outcome, Success):
                return self._settle_success(outcome.response)

            error = self._terminal_error(outcome)
            if not outcome.retryable:
                self._fail(error, outcome.kind)
                raise error

            self._transition(OrchestratorState.BACKING_OFF, outcome.kind)
            step = self._backoff.next(error)
            if isinstance(step, GiveUp):
                self._fail(step.error, outcome.kind)
                raise step.error

            logger.warning(
                "Attempt %d of %s %s failed (%s); retry %d/%d in %.3fs",
                self._attempts,
                self._options.request.method,
                redact_url(self._options.request.url),
                outcome.kind.value,
                step.retry,
                self._backoff.max_retries,
                step.delay,
            )
            await self._wait(step.delay)

    async def _attempt(self, controller: AbortController) -> AttemptOutcome:
        options = self._options
        request = options.request
        timeout = TimeoutSource.start(options.timeout_ms)
        effective = compose(options.signal, timeout.signal if timeout else None, controller)
        try:
            try:
                effective.throw_if_aborted()
                response = await self._race(self._transport.send(request, signal=effective), effective)
                # An abort requested before the response is read wins.
                effective.throw_if_aborted()
                validation_error = self._validate(response)
                # The status predicate may itself abort the handle.
                effective.throw_if_aborted()
            except Exception as exc:
                return classify(self._pending_abort(effective, exc), effective.timeout_fired, request.response_type)
            if validation_error is not None:
                return classify(validation_error, effective.timeout_fired, request.response_type)
            return Success(response=response)
        finally:
            if timeout is not None:
                timeout.cancel()
            effective.close()

    def _pending_abort(self, signal: ComposedSignal, exc: Exception) -> BaseException:
        """An abort already requested outranks a failure raised after it."""
        if not signal.aborted or isinstance(exc, AbortError):
            return exc
        abort = AbortError(source=signal.fired_source, reason=signal.reason)
        abort.__context__ = exc
        return abort

    def _validate(self, response: httpx.Response) -> ValidationFailedError | None:
        try:
            check_status(response, self._options.status_rule)
        except ValidationFailedError as exc:
            return exc
        return None

    async def _race(self, call: Awaitable[httpx.Response], signal: ComposedSignal) -> httpx.Response:
        """Await ``call`` unless ``signal`` fires first; then cancel it."""
        call_task = asyncio.ensure_future(call)
        watcher = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait([call_task, watcher], return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not call_task.done():
                call_task.cancel()
            await asyncio.gather(call_task, watcher, return_exceptions=True)

        signal.throw_if_aborted()
        if call_task.cancelled():
            # Cancelled from inside the transport, not by any source we own.
            msg = "Transport call was cancelled"
            raise AbortError(msg)
        return call_task.result()

    async def _wait(self, delay: float) -> None:
        """Backoff wait, abortable by the caller signal or the current handle."""
        with compose(self._options.signal, None, self._handles.snapshot()) as user_signal:
            try:
                await sleep_unless_aborted(delay, user_signal)
            except AbortError as exc:
                error = UserCancelledError(exc.source, exc.reason)
                self._fail(error, OutcomeKind.USER_CANCELLED)
                raise error from exc

    def _settle_success(self, response: httpx.Response) -> Any:
        response_type = self._options.request.response_type
        try:
            value = decode_body(response, response_type)
        except (ValueError, httpx.StreamError) as exc:
            error = ResponseDecodeError(exc, response_type.value if response_type else "raw")
            self._fail(error, OutcomeKind.TRANSPORT_FAILED)
            raise error from exc
        self._transition(OrchestratorState.SUCCEEDED, OutcomeKind.SUCCESS)
        logger.debug("Request settled after %d attempt(s)", self._attempts)
        return value

    def _terminal_error(self, outcome: AttemptOutcome) -> BaseException:
        if isinstance(outcome, UserCancelled):
            error: BaseException = UserCancelledError(outcome.source, outcome.error.reason)
            error.__cause__ = outcome.error
            return error
        if isinstance(outcome, AttemptTimedOut):
            error = AttemptTimeoutError(self._options.timeout_ms or 0)
            error.__cause__ = outcome.error
            return error
        if isinstance(outcome, ValidationFailed):
            return outcome.error
        if isinstance(outcome, TransportFailed):
            return TransportError(outcome.cause)
        msg = f"Unexpected outcome: {outcome!r}"
        raise TypeError(msg)

    def _fail(self, error: BaseException, outcome: OutcomeKind) -> None:
        self._transition(OrchestratorState.FAILED_TERMINAL, outcome)
        context = self._log_context()
        if outcome is OutcomeKind.USER_CANCELLED:
            logger.info("Request cancelled by caller after %d attempt(s)", self._attempts)
            return
        level = logging.WARNING if outcome is OutcomeKind.VALIDATION_FAILED else logging.ERROR
        log_structured_error(logger, error, context=context, level=level)


class Orchestration:
    """Awaitable handle on a running orchestration.

    ``await orchestration`` yields the decoded body (``json``/``text``) or
    the raw ``httpx.Response``, or raises exactly one classified error.
    """

    def __init__(self, orchestrator: AttemptOrchestrator, task: asyncio.Task[Any]) -> None:
        self._orchestrator = orchestrator
        self._task = task

    def __await__(self) -> Generator[Any, None, Any]:
        return self._task.__await__()

    @property
    def current_cancellation_handle(self) -> AbortController:
        """Handle of the attempt that started most recently (snapshot)."""
        return self._orchestrator.current_cancellation_handle

    def abort(self, reason: Any = None) -> None:
        """Abort whatever attempt or backoff wait is current."""
        self.current_cancellation_handle.abort(reason)

    @property
    def state(self) -> OrchestratorState:
        return self._orchestrator.state

    @property
    def attempts(self) -> int:
        return self._orchestrator.attempts

    @property
    def history(self) -> list[StateTransition]:
        return self._orchestrator.history

    @property
    def request_id(self) -> str:
        return self._orchestrator.request_id

    def done(self) -> bool:
        return self._task.done()


def orchestrate(
    url: str,
    *,
    transport: TransportPort,
    backoff: BackoffPolicy | None = None,
    request_id: str | None = None,
    **options: Any,
) -> Orchestration:
    """Validate options, then start the orchestration on the running loop.

    Raises:
        ConfigurationError: synchronously, before any attempt.
        RuntimeError: if no event loop is running.
    """
    parsed = parse_options(url, options)
    orchestrator = AttemptOrchestrator(
        parsed,
        transport=transport,
        backoff=backoff,
        request_id=request_id,
    )
    task = asyncio.get_running_loop().create_task(orchestrator.run())
    return Orchestration(orchestrator, task)
