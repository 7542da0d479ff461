"""Step accumulation: one open step at a time, closed steps are frozen."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from syncspec.models import (
    EventExpectation,
    NoOpenStepError,
    Scenario,
    SpecConfig,
    StateExpectation,
    Step,
    StepKind,
)

logger = logging.getLogger("syncspec.steps")


@dataclass
class StepDraft:
    """The open step. Mutable until the sequencer closes it."""

    kind: StepKind
    input: Any = None
    watch_snapshot: Optional[int] = None
    expect: List[EventExpectation] = field(default_factory=list)
    state_expect: Dict[str, Any] = field(default_factory=dict)

    def expect_state(self, **fields: Any) -> None:
        """Set (or overwrite) fields of the state expectation."""
        self.state_expect.update(fields)

    def freeze(self, client_index: Optional[int] = None) -> Step:
        return Step(
            kind=self.kind,
            input=self.input,
            watch_snapshot=self.watch_snapshot,
            expect=tuple(self.expect) if self.expect else None,
            state_expect=(
                StateExpectation(**self.state_expect) if self.state_expect else None
            ),
            client_index=client_index,
        )


class StepSequencer:
    """Append-only log of closed steps plus the single open step."""

    def __init__(self) -> None:
        self._open: Optional[StepDraft] = None
        self._closed: List[Step] = []

    @property
    def open_step(self) -> Optional[StepDraft]:
        return self._open

    @property
    def closed_steps(self) -> Tuple[Step, ...]:
        return tuple(self._closed)

    @property
    def started(self) -> bool:
        """True once any step has been opened."""
        return self._open is not None or bool(self._closed)

    def open_next(self, client_index: Optional[int] = None) -> Optional[Step]:
        """Close the open step, if any, tagging it with ``client_index``.

        Returns the step that was closed.
        """
        if self._open is None:
            return None
        step = self._open.freeze(client_index)
        self._closed.append(step)
        self._open = None
        logger.debug("Closed step %d: %r", len(self._closed) - 1, step)
        return step

    def begin(
        self,
        draft: StepDraft,
        client_index: Optional[int] = None,
    ) -> StepDraft:
        """Close the open step and make ``draft`` the new open step."""
        self.open_next(client_index)
        self._open = draft
        return draft

    def require_open(self, message: str) -> StepDraft:
        """Return the open step.

        Raises:
            NoOpenStepError: If no step is open.
        """
        if self._open is None:
            raise NoOpenStepError(f"Expected a previous step: {message}")
        return self._open

    def finalize(
        self,
        config: SpecConfig,
        client_index: Optional[int] = None,
    ) -> Scenario:
        """Flush the open step and return the scenario built so far."""
        self.open_next(client_index)
        return Scenario(config=config, steps=tuple(self._closed))
