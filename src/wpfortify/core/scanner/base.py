"""Shared phase machine for component scanners.

Every component moves through the same lifecycle::

    pending -> preparing -> processing -> finalizing -> completed
         \\_________________ error (any phase, on unrecoverable failure)

``ComponentScanner.advance`` performs exactly one bounded unit of work per
call and records every transition in the ``ComponentState`` it is given,
so a job can be persisted between calls and resumed by another process.
What a unit of work *is* depends on the component kind and is supplied by
a ``ComponentStrategy``: a chunk of files for a single artifact, one
extension for a collection.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from wpfortify.core.models import (
    ComponentKind,
    ComponentResult,
    ComponentState,
    Phase,
    StepOutcome,
)
from wpfortify.exceptions import WPFortifyError

logger = logging.getLogger(__name__)


class ComponentStrategy(ABC):
    """Kind-specific behaviour plugged into ``ComponentScanner``."""

    kind: ComponentKind

    @abstractmethod
    def prepare(self, state: ComponentState) -> str:
        """Resolve metadata, fetch manifests and initialise working data.

        Returns:
            Progress message for the caller.

        Raises:
            WPFortifyError: On unrecoverable failure; the component then
                moves to ``error``.
        """

    @abstractmethod
    def step(self, state: ComponentState) -> str:
        """Perform one bounded unit of comparison and return a message."""

    @abstractmethod
    def exhausted(self, state: ComponentState) -> bool:
        """True once every unit of work has been performed."""

    @abstractmethod
    def finalize(self, state: ComponentState) -> None:
        """Compute deferred results and discard working data."""

    @abstractmethod
    def summary_message(self, state: ComponentState) -> str:
        """One-sentence summary of a completed component."""

    @abstractmethod
    def summarize(self, state: ComponentState) -> ComponentResult:
        """Build the immutable result of a terminal component."""

    def preparing_message(self, state: ComponentState) -> str:
        return "Preparing verification"

    def finalizing_message(self, state: ComponentState, step_message: str) -> str:
        return step_message


class ComponentScanner:
    """Drives one component through its phases, one unit per advance.

    Usage::

        scanner = ComponentScanner(CoreStrategy(site, fetcher))
        while not scanner.advance(state).complete:
            pass
        result = scanner.summarize(state)
    """

    def __init__(self, strategy: ComponentStrategy) -> None:
        self.strategy = strategy

    @property
    def kind(self) -> ComponentKind:
        return self.strategy.kind

    def advance(self, state: ComponentState) -> StepOutcome:
        """Advance ``state`` by one bounded unit of work (mutates it)."""
        phase = state.phase

        if phase is Phase.PENDING:
            return self._prepare(state)

        if phase is Phase.PROCESSING:
            return self._process(state)

        if phase is Phase.FINALIZING:
            return self._finalize(state)

        if phase is Phase.PREPARING:
            # An interrupted prepare is retried from scratch.
            return self._prepare(state)

        return StepOutcome(
            complete=True,
            error=phase is Phase.ERROR,
            message=state.error_message if phase is Phase.ERROR else state.message,
        )

    def summarize(self, state: ComponentState) -> ComponentResult:
        return self.strategy.summarize(state)

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    def _prepare(self, state: ComponentState) -> StepOutcome:
        state.phase = Phase.PREPARING
        state.message = self.strategy.preparing_message(state)
        try:
            message = self.strategy.prepare(state)
        except WPFortifyError as exc:
            return self._fail(state, exc)

        if self.strategy.exhausted(state):
            # Nothing to process: complete within the same unit.
            self.strategy.finalize(state)
            return self._complete(state)

        state.phase = Phase.PROCESSING
        state.message = message
        return StepOutcome(complete=False, message=message)

    def _process(self, state: ComponentState) -> StepOutcome:
        try:
            message = self.strategy.step(state)
        except WPFortifyError as exc:
            return self._fail(state, exc)

        if self.strategy.exhausted(state):
            state.phase = Phase.FINALIZING
            message = self.strategy.finalizing_message(state, message)
        state.message = message
        return StepOutcome(complete=False, message=message)

    def _finalize(self, state: ComponentState) -> StepOutcome:
        try:
            self.strategy.finalize(state)
        except WPFortifyError as exc:
            return self._fail(state, exc)
        return self._complete(state)

    def _complete(self, state: ComponentState) -> StepOutcome:
        state.phase = Phase.COMPLETED
        state.message = self.strategy.summary_message(state)
        return StepOutcome(complete=True, message=state.message)

    def _fail(self, state: ComponentState, exc: WPFortifyError) -> StepOutcome:
        logger.warning("Component %s failed: %s", state.component, exc)
        state.phase = Phase.ERROR
        state.error_message = str(exc)
        state.message = state.error_message
        return StepOutcome(complete=True, error=True, message=state.message)
