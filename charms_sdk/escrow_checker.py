"""
Charms SDK - Escrow Spell Checker

Escrow / bounty lifecycle as a state machine over u64 state codes:

  Created(0) -> Funded(1) -> MilestoneCompleted(i) (100+i) -> Released(2)
                Funded(1) -> Disputed(3) -> Refunded(4)
                             Disputed(3) -> Released(2)

Released and Refunded are terminal. Anything not listed is rejected.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .charm_types import App, Transaction
from .data import U64_MAX, Data

MILESTONE_BASE = 100


class EscrowPhase(Enum):
    """Escrow phase (state without the milestone index)"""
    CREATED = 0
    FUNDED = 1
    RELEASED = 2
    DISPUTED = 3
    REFUNDED = 4
    MILESTONE_COMPLETED = MILESTONE_BASE


@dataclass(frozen=True)
class EscrowState:
    """
    Escrow state.

    Use the class constants (EscrowState.CREATED, ...) or
    EscrowState.milestone_completed(i); `code` is the on-ledger u64.
    """
    phase: EscrowPhase
    milestone: int = 0

    @classmethod
    def milestone_completed(cls, index: int) -> "EscrowState":
        if index < 0:
            raise ValueError(f"Milestone index must be >= 0, got {index}")
        return cls(EscrowPhase.MILESTONE_COMPLETED, index)

    @classmethod
    def from_code(cls, code: int) -> Optional["EscrowState"]:
        """Map a u64 code to a state (None for 5..99 and outside the u64 range)."""
        if code > U64_MAX:
            return None
        if code >= MILESTONE_BASE:
            return cls.milestone_completed(code - MILESTONE_BASE)
        try:
            return cls(EscrowPhase(code))
        except ValueError:
            return None

    @property
    def code(self) -> int:
        if self.phase is EscrowPhase.MILESTONE_COMPLETED:
            return MILESTONE_BASE + self.milestone
        return self.phase.value

    @property
    def is_milestone(self) -> bool:
        return self.phase is EscrowPhase.MILESTONE_COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.phase in (EscrowPhase.RELEASED, EscrowPhase.REFUNDED)

    def to_data(self) -> Data:
        return Data.u64(self.code)

    def __str__(self) -> str:
        return escrow_state_name(self)


EscrowState.CREATED = EscrowState(EscrowPhase.CREATED)
EscrowState.FUNDED = EscrowState(EscrowPhase.FUNDED)
EscrowState.RELEASED = EscrowState(EscrowPhase.RELEASED)
EscrowState.DISPUTED = EscrowState(EscrowPhase.DISPUTED)
EscrowState.REFUNDED = EscrowState(EscrowPhase.REFUNDED)


@dataclass
class EscrowCheckResult:
    """Escrow check verdict"""
    valid: bool
    current_state: Optional[EscrowState]
    next_state: Optional[EscrowState]
    transition_valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "current_state": self.current_state.code if self.current_state else None,
            "next_state": self.next_state.code if self.next_state else None,
            "current_state_name": escrow_state_name(self.current_state),
            "next_state_name": escrow_state_name(self.next_state),
            "transition_valid": self.transition_valid,
            "errors": list(self.errors)
        }


def escrow_state_name(state: Optional[EscrowState]) -> str:
    """Display name ("None" for no state)."""
    if state is None:
        return "None"
    if state.is_milestone:
        return f"MilestoneCompleted({state.milestone})"
    return state.phase.name.capitalize()


def parse_escrow_state(data: Data) -> Optional[EscrowState]:
    """Parse u64 state data; any other variant is no state."""
    code = data.as_u64()
    if code is None:
        return None
    return EscrowState.from_code(code)


def is_valid_transition(current: Optional[EscrowState], next_state: Optional[EscrowState]) -> bool:
    """True iff (current, next) is on the transition whitelist."""
    if next_state is None:
        return False
    if current is None:
        return next_state == EscrowState.CREATED

    phase, nxt = current.phase, next_state.phase
    if phase is EscrowPhase.CREATED:
        return nxt is EscrowPhase.FUNDED
    if phase is EscrowPhase.FUNDED:
        return nxt in (EscrowPhase.MILESTONE_COMPLETED, EscrowPhase.DISPUTED)
    if phase is EscrowPhase.MILESTONE_COMPLETED:
        return nxt is EscrowPhase.RELEASED
    if phase is EscrowPhase.DISPUTED:
        return nxt in (EscrowPhase.REFUNDED, EscrowPhase.RELEASED)
    return False


def _first_state(states: Iterable[Data]) -> Optional[EscrowState]:
    # The first UTXO carrying the tag decides, even when unparsable
    for data in states:
        return parse_escrow_state(data)
    return None


def escrow_check(app: App, tx: Transaction, x: Data, w: Data) -> EscrowCheckResult:
    """
    Validate an escrow (or bounty) state transition.

    Args:
        app: Escrow app (tag e.g. "escrow:<id>" or "bounty:<id>")
        tx: Transaction whose first tagged input holds the current state
            and first tagged output holds the next state
        x: Public input (unused)
        w: Witness (unused)

    Returns:
        EscrowCheckResult
    """
    errors: List[str] = []

    current_state = _first_state(tx.input_states(app.tag))
    next_state = _first_state(tx.output_states(app.tag))

    transition_valid = is_valid_transition(current_state, next_state)
    if not transition_valid:
        errors.append(
            f"Invalid state transition: {escrow_state_name(current_state)} → "
            f"{escrow_state_name(next_state)}"
        )

    return EscrowCheckResult(
        valid=transition_valid,
        current_state=current_state,
        next_state=next_state,
        transition_valid=transition_valid,
        errors=errors
    )
