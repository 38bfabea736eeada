"""Offer and foreclosure bid state machines.

Offers: pending -> {accepted, rejected, countered}; all three are terminal.
Bids move strictly forward: pending -> reviewed -> contacted -> {won, lost}.
"""

from investor_platform.domain.enums import BidStatus, OfferStatus
from investor_platform.domain.errors import IllegalTransition

O = OfferStatus
B = BidStatus

# ---------------------------------------------------------------------------
# Transition maps: from_status -> set of allowed to_status
# ---------------------------------------------------------------------------

OFFER_TRANSITIONS: dict[OfferStatus, set[OfferStatus]] = {
    O.PENDING: {O.ACCEPTED, O.REJECTED, O.COUNTERED},
}

OFFER_TERMINAL_STATES: set[OfferStatus] = {O.ACCEPTED, O.REJECTED, O.COUNTERED}

BID_TRANSITIONS: dict[BidStatus, set[BidStatus]] = {
    B.PENDING: {B.REVIEWED},
    B.REVIEWED: {B.CONTACTED},
    B.CONTACTED: {B.WON, B.LOST},
}

BID_TERMINAL_STATES: set[BidStatus] = {B.WON, B.LOST}


class ProposalStateMachine:
    """Validates a status change against one transition map."""

    def __init__(self, enum_cls, transitions: dict, terminal_states: set, label: str):
        self.enum_cls = enum_cls
        self.transitions = transitions
        self.terminal_states = terminal_states
        self.label = label

    def _coerce(self, status, raw):
        try:
            return self.enum_cls(status)
        except ValueError:
            raise IllegalTransition(
                str(raw[0]), str(raw[1]), f"Unknown {self.label} status: {status}"
            ) from None

    def validate_transition(self, current_status, target_status) -> bool:
        """Return True if the transition is legal. Raise IllegalTransition if not."""
        raw = (getattr(current_status, "value", current_status),
               getattr(target_status, "value", target_status))
        current = self._coerce(current_status, raw)
        target = self._coerce(target_status, raw)

        if current in self.terminal_states:
            raise IllegalTransition(
                current.value,
                target.value,
                f"{self.label.capitalize()} is already {current.value}",
            )

        allowed = self.transitions.get(current, set())
        if target not in allowed:
            raise IllegalTransition(
                current.value,
                target.value,
                f"Transition from {current.value} to {target.value} is not allowed",
            )
        return True

    def get_allowed_transitions(self, current_status) -> list:
        """Return the valid next states from the current status, in enum order."""
        current = self.enum_cls(current_status)
        allowed = self.transitions.get(current, set())
        return [s for s in self.enum_cls if s in allowed]

    def is_terminal(self, status) -> bool:
        return self.enum_cls(status) in self.terminal_states


offer_state_machine = ProposalStateMachine(
    OfferStatus, OFFER_TRANSITIONS, OFFER_TERMINAL_STATES, "offer"
)
bid_state_machine = ProposalStateMachine(
    BidStatus, BID_TRANSITIONS, BID_TERMINAL_STATES, "bid"
)
