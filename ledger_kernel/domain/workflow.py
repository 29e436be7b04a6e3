"""
Voucher lifecycle workflow (``ledger_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects describing the voucher state machine, plus the lookup
that the lifecycle service uses before every transition.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* CANCELLED is terminal.
* ``reverse`` leaves the original voucher POSTED; it is modelled as a
  self-transition that creates a new voucher.
"""

from __future__ import annotations

from dataclasses import dataclass

from ledger_kernel.exceptions import InvalidTransitionError
from ledger_kernel.models.voucher import VoucherStatus


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the lifecycle service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``creates_voucher=True`` marks transitions that produce a sibling
    voucher instead of only changing the status of the current one.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    creates_voucher: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"initial state {self.initial_state} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(f"transition {t.action} references unknown state")

    def find(self, from_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None


BALANCED_GUARD = Guard(
    name="balanced",
    description="Stored postings still balance and belong to the business",
)

ORIGINAL_DATE_GUARD = Guard(
    name="dated_on_or_after_original",
    description="Reversal date is not before the original voucher date",
)

VOUCHER_WORKFLOW = Workflow(
    name="voucher",
    description="Voucher lifecycle: draft, post, cancel, reverse",
    initial_state=VoucherStatus.DRAFT.value,
    states=tuple(s.value for s in VoucherStatus),
    transitions=(
        Transition("DRAFT", "POSTED", action="post", guard=BALANCED_GUARD),
        Transition("DRAFT", "CANCELLED", action="cancel"),
        Transition("POSTED", "CANCELLED", action="cancel"),
        Transition(
            "POSTED",
            "POSTED",
            action="reverse",
            guard=ORIGINAL_DATE_GUARD,
            creates_voucher=True,
        ),
    ),
    terminal_states=("CANCELLED",),
)


def require_transition(voucher_id, status: VoucherStatus | str, action: str) -> Transition:
    """
    Look up the transition for ``action`` from ``status``.

    Raises:
        InvalidTransitionError: the action is not allowed from ``status``.
    """
    current = VoucherStatus(status).value
    transition = VOUCHER_WORKFLOW.find(current, action)
    if transition is None:
        raise InvalidTransitionError(
            voucher_id=str(voucher_id),
            from_status=current,
            action=action,
        )
    return transition
