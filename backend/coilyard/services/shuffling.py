"""Shuffle planning: which coils to move first, and where they can go.

Score = priority weight + min(days_in_yard * 2, 40), with weights
urgent 40, high 30, medium 10, low 0.  A coil needs shuffling once its
score passes 40 or it has been in the yard more than 30 days.
"""

from datetime import datetime
from typing import Iterable

from coilyard.models.enums import CoilPriority, CoilStatus
from coilyard.schemas.coil import CoilRecord, ShuffleCandidate
from coilyard.schemas.position import PositionRecord
from coilyard.services.layer_rules import can_occupy
from coilyard.services.position_graph import PositionGraph

PRIORITY_WEIGHTS = {
    CoilPriority.URGENT: 40,
    CoilPriority.HIGH: 30,
    CoilPriority.MEDIUM: 10,
    CoilPriority.LOW: 0,
}
AGE_POINTS_PER_DAY = 2
MAX_AGE_POINTS = 40
SHUFFLE_SCORE_THRESHOLD = 40
SHUFFLE_AGE_THRESHOLD_DAYS = 30


def days_in_yard(coil: CoilRecord, now: datetime) -> int:
    if not coil.received_date:
        return 0
    return max((now - coil.received_date).days, 0)


def shuffle_priority(coil: CoilRecord, now: datetime) -> tuple[int, int, bool]:
    """Return (days_in_yard, score, needs_shuffle)."""
    days = days_in_yard(coil, now)
    score = PRIORITY_WEIGHTS.get(coil.priority, 0) + min(days * AGE_POINTS_PER_DAY, MAX_AGE_POINTS)
    needs = score > SHUFFLE_SCORE_THRESHOLD or days > SHUFFLE_AGE_THRESHOLD_DAYS
    return days, score, needs


def rank_shuffle_candidates(
    coils: Iterable[CoilRecord],
    positions: Iterable[PositionRecord],
    now: datetime | None = None,
) -> list[ShuffleCandidate]:
    """Coils in the yard, highest shuffle score first."""
    now = now or datetime.utcnow()
    by_id = {p.id: p for p in positions}
    out = []
    for coil in coils:
        if coil.status != CoilStatus.IN_YARD:
            continue
        days, score, needs = shuffle_priority(coil, now)
        current = by_id.get(coil.current_stacking_position_id) if coil.current_stacking_position_id else None
        out.append(ShuffleCandidate(
            coil=coil,
            days_in_yard=days,
            priority_score=score,
            needs_shuffle=needs,
            current_placeholder_id=current.placeholder_id if current else None,
            current_layer=current.layer if current else None,
        ))
    out.sort(key=lambda c: c.priority_score, reverse=True)
    return out


def shuffle_targets(graph: PositionGraph) -> list[PositionRecord]:
    """Empty, active, visible positions a coil could be moved onto now."""
    return [
        pos for pos in graph.positions()
        if pos.is_active and pos.is_visible and not pos.coil_barcode and can_occupy(pos, graph)
    ]
