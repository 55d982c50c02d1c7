"""Sequential multi-step writes with compensating actions.

Some workflows span the identity provider and the relational store (or an
outbound email call) and cannot share one transaction. A ``Saga`` runs its
steps in order; when a step raises, the compensations of the steps that
already completed run in reverse order and the original exception is
re-raised.

Example:
    saga = Saga("invitation_signup")
    account = await saga.run(create_account, compensate=lambda acct: delete(acct.id))
    await saga.run(insert_membership)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from impactos.core.structured_logging import log_json

logger = logging.getLogger(__name__)

T = TypeVar("T")

Compensation = Callable[[Any], Awaitable[None]]


class Saga:
    """Runs steps and remembers how to undo them."""

    def __init__(self, name: str):
        self.name = name
        self._compensations: list[tuple[str, Compensation, Any]] = []

    async def run(
        self,
        step: Callable[[], Awaitable[T]],
        *,
        compensate: Compensation | None = None,
        label: str | None = None,
    ) -> T:
        """Run one step.

        Args:
            step: Zero-argument coroutine function performing the write
            compensate: Coroutine function receiving the step's result and
                undoing it; registered only after the step succeeds
            label: Name used in logs (defaults to the step's ``__name__``)

        Returns:
            Whatever ``step`` returned
        """
        step_label = label or getattr(step, "__name__", "step")
        try:
            result = await step()
        except Exception as exc:
            await self._compensate(failed_step=step_label, error=exc)
            raise

        if compensate is not None:
            self._compensations.append((step_label, compensate, result))
        return result

    async def _compensate(self, failed_step: str, error: Exception) -> None:
        if not self._compensations:
            return

        log_json(
            logger,
            logging.WARNING,
            "saga_compensating",
            saga=self.name,
            failed_step=failed_step,
            error=str(error),
            exception=error.__class__.__name__,
        )
        while self._compensations:
            step_label, compensate, result = self._compensations.pop()
            try:
                await compensate(result)
            except Exception as comp_exc:
                # Keep unwinding; the original error is what the caller sees.
                log_json(
                    logger,
                    logging.ERROR,
                    "saga_compensation_failed",
                    saga=self.name,
                    step=step_label,
                    error=str(comp_exc),
                    exception=comp_exc.__class__.__name__,
                )
            else:
                log_json(logger, logging.INFO, "saga_compensated", saga=self.name, step=step_label)
