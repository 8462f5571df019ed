"""Closed value sets for yard records and the coil status transition table.

Status strings are never assigned ad hoc: every engine action looks up the
status it sets (and the statuses it may start from) in ``STATUS_TRANSITIONS``.
"""

import enum


class CoilStatus(str, enum.Enum):
    INCOMING = "incoming"
    IN_YARD = "in_yard"
    IN_PROCESS = "in_process"
    OUTGOING = "outgoing"
    SHIPPED = "shipped"


class CoilPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class PositionType(str, enum.Enum):
    GROUND = "ground"
    BRIDGING = "bridging"


class MovementType(str, enum.Enum):
    RECEIPT = "receipt"
    SHUFFLE = "shuffle"
    RETURN = "return"
    LOADING = "loading"


class StockTakeStatus(str, enum.Enum):
    COMPLETED = "completed"
    RECONCILED = "reconciled"


class ChangeType(str, enum.Enum):
    """Pending reconciliation change kinds."""
    ASSIGN = "assign"
    UNASSIGN = "unassign"
    MARK_MISSING = "mark_missing"


class AllocationAction(str, enum.Enum):
    ASSIGN = "assign"
    SHUFFLE = "shuffle"
    RETURN = "return"
    UNASSIGN = "unassign"
    MARK_MISSING = "mark_missing"


# Removal kinds accepted by AllocationService.remove()
REMOVAL_ACTIONS = (
    AllocationAction.RETURN,
    AllocationAction.UNASSIGN,
    AllocationAction.MARK_MISSING,
)

MAX_LAYER = 3

# Statuses that mean the coil has left (or is leaving) the yard
NOT_IN_YARD_STATUSES = frozenset({CoilStatus.OUTGOING, CoilStatus.SHIPPED})

_ANY_STATUS = frozenset(CoilStatus)

# action → (statuses the coil may be in beforehand, status afterwards)
STATUS_TRANSITIONS: dict[AllocationAction, tuple[frozenset[CoilStatus], CoilStatus]] = {
    AllocationAction.ASSIGN: (
        frozenset({CoilStatus.INCOMING, CoilStatus.IN_YARD, CoilStatus.IN_PROCESS}),
        CoilStatus.IN_YARD,
    ),
    AllocationAction.SHUFFLE: (
        frozenset({CoilStatus.IN_YARD, CoilStatus.IN_PROCESS}),
        CoilStatus.IN_YARD,
    ),
    # Taken off the stack and sent back to receiving
    AllocationAction.RETURN: (_ANY_STATUS, CoilStatus.INCOMING),
    # Found in the yard but not at its recorded placeholder
    AllocationAction.UNASSIGN: (_ANY_STATUS, CoilStatus.IN_YARD),
    # Not found during a stock take
    AllocationAction.MARK_MISSING: (_ANY_STATUS, CoilStatus.INCOMING),
}


def next_status(action: AllocationAction, current: CoilStatus | str) -> CoilStatus | None:
    """Return the status ``action`` sets, or None if ``current`` does not allow it."""
    allowed, target = STATUS_TRANSITIONS[action]
    if CoilStatus(current) not in allowed:
        return None
    return target
