"""
scramsasl State Machine Base

Table-driven state machine shared by exchange implementations.

A subclass declares its transitions as a mapping

    (current state, event class) -> (next state, context updater)

and the base class does the rest: it refuses events with no entry, runs
the updater to obtain the candidate context, checks every registered
invariant against (next state, candidate context) and only then commits.
Each committed step is kept as a Transition so an exchange can be replayed
or audited afterwards.

Context updaters are pure: they receive the event and the current context
and return a new context (normally via attrs.evolve).

Snapshots stored in the history never contain secret material: private
attributes and fields declared with repr=False are left out, and any
SecretBytes that slips through is rendered as "<secret>".
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

import attrs
import structlog
from returns.result import Failure, Result, Success

from scramsasl.core.exceptions import InvariantViolation
from scramsasl.core.types import SecretBytes


S = TypeVar("S", bound=Enum)  # State type
C = TypeVar("C")  # Context type

ContextUpdater = Callable[[Any, Any], Any]

# (next_state, context_updater)
TransitionEntry = Tuple[S, ContextUpdater]

TransitionTable = Dict[Tuple[S, type], TransitionEntry]

Invariant = Callable[[S, Any], bool]


# =============================================================================
# HISTORY
# =============================================================================


def _redact(inst: Any, attribute: attrs.Attribute, value: Any) -> Any:  # noqa: ARG001
    if isinstance(value, SecretBytes):
        return "<secret>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}>"
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _public(attribute: attrs.Attribute, value: Any) -> bool:  # noqa: ARG001
    return attribute.repr and not attribute.name.startswith("_")


def snapshot(obj: Any) -> Dict[str, Any]:
    """JSON-ready view of an attrs context or event, without secrets."""
    if not attrs.has(type(obj)):
        return {"type": type(obj).__name__}
    return attrs.asdict(obj, filter=_public, value_serializer=_redact)


@attrs.define(frozen=True, slots=True)
class Transition(Generic[S]):
    """One committed step of a state machine."""

    from_state: S
    event_type: str
    to_state: S
    timestamp: datetime
    context_snapshot: Dict[str, Any] = attrs.Factory(dict)
    event_data: Dict[str, Any] = attrs.Factory(dict)

    def to_dict(self) -> Dict[str, Any]:
        record = attrs.asdict(self, recurse=False)
        record["from_state"] = self.from_state.name
        record["to_state"] = self.to_state.name
        record["timestamp"] = self.timestamp.isoformat()
        return record


# =============================================================================
# STATE MACHINE
# =============================================================================


@attrs.define
class StateMachineBase(ABC, Generic[S, C]):
    """
    Base class for table-driven state machines.

    Subclasses implement initial_state() and transition_table(); the table
    is the single source of truth for which events each state accepts.

    Example:
        @attrs.define
        class DoorMachine(StateMachineBase[DoorState, DoorContext]):
            def initial_state(self) -> DoorState:
                return DoorState.CLOSED

            def transition_table(self) -> TransitionTable:
                return {
                    (DoorState.CLOSED, Opened): (DoorState.OPEN, self._on_open),
                }

            @staticmethod
            def _on_open(event: Opened, ctx: DoorContext) -> DoorContext:
                return attrs.evolve(ctx, opened_by=event.who)
    """

    _state: S
    _context: C
    _history: List[Transition[S]] = attrs.field(factory=list)
    _invariants: List[Tuple[str, Invariant]] = attrs.field(factory=list)
    _logger: Any = attrs.field(factory=lambda: structlog.get_logger())

    @abstractmethod
    def initial_state(self) -> S:
        ...

    @abstractmethod
    def transition_table(self) -> TransitionTable:
        """Map (state, event class) to (next state, context updater)."""
        ...

    @property
    def state(self) -> S:
        return self._state

    @property
    def context(self) -> C:
        """Current context. Treat as read-only; change it through events."""
        return self._context

    def accepts(self, event_type: type) -> bool:
        """True if the current state has a transition for event_type."""
        return (self._state, event_type) in self.transition_table()

    def add_invariant(self, name: str, invariant: Invariant) -> None:
        """
        Register a check run against every candidate (state, context).

        Args:
            name: Reported in InvariantViolation and in the log
            invariant: Predicate (next_state, candidate_context) -> bool
        """
        self._invariants.append((name, invariant))

    def process_event(self, event: Any) -> Result[S, str]:
        """
        Apply an event.

        Returns:
            Success(next_state) once committed, or Failure(reason) when the
            current state has no transition for this event. A refused event
            leaves state, context and history untouched.

        Raises:
            InvariantViolation: The candidate state/context broke an
                invariant; nothing was committed
        """
        event_name = type(event).__name__
        entry = self.transition_table().get((self._state, type(event)))
        if entry is None:
            self._logger.warning(
                "invalid_transition",
                current_state=self._state.name,
                event_type=event_name,
            )
            return Failure(f"{self._state.name} does not accept {event_name}")

        next_state, update = entry
        candidate = update(event, self._context)

        broken = self._broken_invariant(next_state, candidate)
        if broken is not None:
            self._logger.error(
                "invariant_violated",
                invariant=broken,
                from_state=self._state.name,
                to_state=next_state.name,
            )
            raise InvariantViolation(f"Invariant '{broken}' violated entering {next_state.name}")

        self._history.append(Transition(
            from_state=self._state,
            event_type=event_name,
            to_state=next_state,
            timestamp=datetime.now(timezone.utc),
            context_snapshot=snapshot(candidate),
            event_data=snapshot(event),
        ))
        self._logger.info(
            "state_transition",
            from_state=self._state.name,
            to_state=next_state.name,
            event_type=event_name,
        )

        self._state, self._context = next_state, candidate
        return Success(next_state)

    def get_trace(self) -> List[Transition[S]]:
        """Committed transitions, oldest first (a copy)."""
        return list(self._history)

    def export_trace_json(self) -> str:
        return json.dumps(
            {
                "machine": type(self).__name__,
                "initial_state": self.initial_state().name,
                "final_state": self._state.name,
                "transitions": [step.to_dict() for step in self._history],
            },
            indent=2,
        )

    def _broken_invariant(self, state: S, context: C) -> Optional[str]:
        for name, holds in self._invariants:
            if not holds(state, context):
                return name
        return None
