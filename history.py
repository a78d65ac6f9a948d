"""Event-sourced batch history.

A batch's current owner and lifecycle state are a fold over its history:
they always equal the `to` and `step` of the newest event. append_event is
the only function that sets them, and it never persists; the caller writes
the whole batch back through BatchStore.put inside the same transaction.
"""

from typing import Dict, List, Optional, Tuple

from schemas import BatchStatus, HistoryEvent, ReportDetail, RiceBatch


def append_event(
    batch: RiceBatch,
    timestamp: str,
    from_party: str,
    to_party: str,
    step: str,
    report: Optional[ReportDetail] = None,
    operator: Optional[str] = None,
) -> HistoryEvent:
    event = HistoryEvent(
        timestamp=timestamp,
        from_=from_party,
        to=to_party,
        step=step,
        report=report or ReportDetail(),
        operator=operator,
    )
    batch.history.append(event)
    batch.current_owner = to_party
    batch.current_state = step
    return event


def new_batch(
    batch_id: str,
    origin: str,
    variety: str,
    harvest_date: str,
    timestamp: str,
    owner: str,
    initial_step: str,
    report: ReportDetail,
) -> RiceBatch:
    """Build a batch whose genesis event hands it to `owner`."""
    batch = RiceBatch(
        batch_id=batch_id,
        origin=origin,
        variety=variety,
        harvest_date=harvest_date,
    )
    append_event(batch, timestamp, "", owner, initial_step, report)
    return batch


def replay(history: List[HistoryEvent]) -> Tuple[str, str]:
    owner, state = "", ""
    for event in history:
        owner, state = event.to, event.step
    return owner, state


def is_consistent(batch: RiceBatch) -> bool:
    if not batch.history:
        return False
    return replay(batch.history) == (batch.current_owner, batch.current_state)


def summarize(batch: RiceBatch) -> BatchStatus:
    last = batch.history[-1].timestamp if batch.history else ""
    return BatchStatus(
        batch_id=batch.batch_id,
        current_owner=batch.current_owner,
        current_state=batch.current_state,
        variety=batch.variety,
        origin=batch.origin,
        harvest_date=batch.harvest_date,
        event_count=len(batch.history),
        last_updated=last,
    )


# ---------- deprecated read projections ----------
def owner_transfers(batch: RiceBatch) -> List[Dict[str, str]]:
    """Ownership changes in the old {from, to, timestamp} shape."""
    return [
        {"from": e.from_, "to": e.to, "timestamp": e.timestamp}
        for e in batch.history
        if e.from_ != e.to
    ]


def processing_records(batch: RiceBatch) -> List[Dict[str, str]]:
    """Steps in the old {step, timestamp, operator} shape.

    The operator is the one recorded on the event, else the receiving party.
    """
    return [
        {"step": e.step, "timestamp": e.timestamp, "operator": e.operator or e.to}
        for e in batch.history
    ]
