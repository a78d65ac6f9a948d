"""Host ledger primitives the transaction logic runs on.

A transaction sees the world state through a LedgerStub: reads come from
committed state and are remembered with their version (read set), writes are
buffered as whole documents (write set). Nothing reaches the database until
submit_transaction validates the read set and applies every write in one
commit, so a transaction either lands completely or not at all.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from errors import ReadConflictError
from models import StateEntry
from utils import iso_timestamp

logger = logging.getLogger(__name__)


class LedgerStub:
    def __init__(self, db: Session, tx_id: str = ""):
        self.db = db
        self.tx_id = tx_id
        self.read_set: Dict[str, Optional[int]] = {}
        self.write_set: Dict[str, str] = {}

    def get_state(self, key: str) -> Optional[str]:
        entry = self.db.get(StateEntry, key)
        self.read_set.setdefault(key, entry.version if entry else None)
        return entry.value if entry else None

    def put_state(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("ledger key must not be empty")
        self.write_set[key] = value

    def get_state_by_range(self, start: str, end: str) -> Iterator[Tuple[str, str]]:
        """Yield (key, value) for start <= key < end in key order."""
        stmt = (
            select(StateEntry)
            .where(StateEntry.key >= start, StateEntry.key < end)
            .order_by(StateEntry.key)
        )
        for entry in self.db.scalars(stmt):
            self.read_set.setdefault(entry.key, entry.version)
            yield entry.key, entry.value

    def _write(self, key: str, value: str) -> None:
        entry = self.db.get(StateEntry, key)
        current = entry.version if entry else None
        if key in self.read_set and self.read_set[key] != current:
            raise ReadConflictError(self.tx_id, key)
        if entry is None:
            self.db.add(StateEntry(key=key, value=value))
        else:
            entry.value = value
        try:
            # UPDATE ... WHERE version = <loaded>; INSERT collides on the key
            self.db.flush()
        except (StaleDataError, IntegrityError) as exc:
            raise ReadConflictError(self.tx_id, key) from exc

    def _check_unchanged(self, key: str, version: Optional[int]) -> None:
        if version is None:
            unchanged = self.db.scalar(select(StateEntry.key).where(StateEntry.key == key)) is None
        else:
            # no-op UPDATE so the row is locked for the rest of the commit
            stmt = (
                update(StateEntry)
                .where(StateEntry.key == key, StateEntry.version == version)
                .values(version=version)
                .execution_options(synchronize_session=False)
            )
            unchanged = self.db.execute(stmt).rowcount == 1
        if not unchanged:
            raise ReadConflictError(self.tx_id, key)

    def commit(self) -> None:
        """Apply the write set and re-check the read set in one DB transaction.

        Written keys are checked by the mapper's version column at flush time;
        keys that were only read are checked afterwards, while the writes are
        still uncommitted. Any mismatch raises ReadConflictError and the caller
        rolls the session back.
        """
        for key, value in self.write_set.items():
            self._write(key, value)
        for key, version in self.read_set.items():
            if key not in self.write_set:
                self._check_unchanged(key, version)
        self.db.commit()


@dataclass
class TxContext:
    """What the platform hands a transaction: stub, caller credential, commit time."""
    stub: LedgerStub
    credential: str
    tx_timestamp: datetime
    tx_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def timestamp(self) -> str:
        return iso_timestamp(self.tx_timestamp)


def new_context(db: Session, credential: str, timestamp: Optional[datetime] = None) -> TxContext:
    tx_id = uuid.uuid4().hex
    return TxContext(
        stub=LedgerStub(db, tx_id),
        credential=credential or "",
        tx_timestamp=timestamp or datetime.now(timezone.utc),
        tx_id=tx_id,
    )


def submit_transaction(
    db: Session,
    credential: str,
    fn: Callable[..., Any],
    *args: Any,
    timestamp: Optional[datetime] = None,
) -> Any:
    """Run a mutating entry point and commit its write set atomically."""
    ctx = new_context(db, credential, timestamp)
    try:
        result = fn(ctx, *args)
        ctx.stub.commit()
    except Exception:
        db.rollback()
        logger.warning("tx %s (%s) rejected", ctx.tx_id, fn.__name__)
        raise
    logger.info(
        "tx %s (%s) committed %d write(s)",
        ctx.tx_id, fn.__name__, len(ctx.stub.write_set),
    )
    return result


def evaluate_transaction(
    db: Session,
    credential: str,
    fn: Callable[..., Any],
    *args: Any,
    timestamp: Optional[datetime] = None,
) -> Any:
    """Run a query; any writes it buffers are discarded."""
    ctx = new_context(db, credential, timestamp)
    try:
        return fn(ctx, *args)
    finally:
        db.rollback()
