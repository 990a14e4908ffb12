"""
Saga — compensated steps with automatic rollback.

A step pairs an action (LazyCoroResult) with a compensator that undoes it.
When a later step fails, the compensators of the steps that succeeded run
in reverse order.

    from retailfabric import saga as S

    upload_then_write = (
        S.step(upload_image, compensate=delete_image)
        .then(lambda ref: S.step(write_product(ref.url)))
    )

    match await S.run_chain(upload_then_write):
        case Ok(r): r.value
        case Error(e): e.error, e.rollback_complete
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from combinators import lift as L
from kungfu import Error, LazyCoroResult, Ok, Result

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[None]]
"""Receives the action's value and undoes it."""


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None

    def then[U, E2](self, f: Callable[[T], SagaStep[U, E2]]) -> Then[T, U, E, E2]:
        """Chain another step that depends on this step's value."""
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U, E, E2]:
    inner: SagaStep[T, E]
    f: Callable[[T], SagaStep[U, E2]]


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """
    error: The failing step's error.
    step_failed: 1-based index of the failing step.
    rollback_complete: Every recorded compensator ran without raising.
    """

    error: E
    step_failed: int
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    return SagaStep(action=action, compensate=compensate)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T, E]:
    """
    Step from a plain async callable; exceptions become on_error(e).

    Example:
        S.from_async(
            lambda: gateway.reserve(sku),
            on_error=lambda e: ReserveError(str(e)),
            compensate=lambda r: gateway.release(r.id),
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════

type _Recorded = list[tuple[object, Compensator[object]]]


async def _run_step[T, E](s: SagaStep[T, E], recorded: _Recorded) -> Result[T, E]:
    match await s.action:
        case Ok(value):
            if s.compensate is not None:
                recorded.append((value, s.compensate))  # type: ignore[arg-type]
            return Ok(value)
        case Error(e):
            return Error(e)


async def _rollback(recorded: _Recorded, correlation_id: str) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    ran = 0
    failed = 0
    for value, compensate in reversed(recorded):
        try:
            await compensate(value)
            ran += 1
        except Exception:
            failed += 1
            logger.exception("Compensator failed", extra={"correlation_id": correlation_id})
    return ran, failed


async def _fail[E](
    error: E,
    step_failed: int,
    recorded: _Recorded,
    correlation_id: str,
) -> Result[SagaResult[object], SagaError[E]]:
    ran, failed = await _rollback(recorded, correlation_id)
    if recorded:
        logger.info(
            "Saga failed at step %d, rolled back %d/%d",
            step_failed,
            ran,
            len(recorded),
            extra={"correlation_id": correlation_id},
        )
    return Error(SagaError(
        error=error,
        step_failed=step_failed,
        compensators_run=ran,
        compensators_failed=failed,
        rollback_complete=failed == 0,
    ))


async def run[T, E](
    saga: SagaStep[T, E],
    *,
    correlation_id: str = "-",
) -> Result[SagaResult[T], SagaError[E]]:
    recorded: _Recorded = []
    match await _run_step(saga, recorded):
        case Ok(value):
            return Ok(SagaResult(value, steps_executed=1, compensators_recorded=len(recorded)))
        case Error(e):
            return await _fail(e, 1, recorded, correlation_id)  # type: ignore[return-value]


async def run_chain[T, U, E, E2](
    chain: Then[T, U, E, E2],
    *,
    correlation_id: str = "-",
) -> Result[SagaResult[U], SagaError[E | E2]]:
    """
    Run inner step, feed its value to f, run the resulting step.

    On failure of either step, everything recorded so far is compensated.
    """
    recorded: _Recorded = []

    match await _run_step(chain.inner, recorded):
        case Error(e):
            return await _fail(e, 1, recorded, correlation_id)  # type: ignore[return-value]
        case Ok(value):
            pass

    match await _run_step(chain.f(value), recorded):
        case Ok(final):
            return Ok(SagaResult(final, steps_executed=2, compensators_recorded=len(recorded)))
        case Error(e2):
            return await _fail(e2, 2, recorded, correlation_id)  # type: ignore[return-value]


__all__ = (
    "Compensator",
    "SagaStep",
    "Then",
    "SagaResult",
    "SagaError",
    "step",
    "from_async",
    "run",
    "run_chain",
)
