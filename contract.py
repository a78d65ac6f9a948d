"""Rice traceability transactions.

Every function takes the transaction context first and runs to completion
synchronously. Mutations authorize the caller, then check existence, then
parse payloads, then do one read-modify-write of a whole record; the ledger
applies the resulting write set atomically or not at all.
"""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

import history
from permissions import Operation, authorize, permission_matrix, resolve_role
from schemas import (
    BatchStatus,
    CallerInfo,
    HistoryEvent,
    Product,
    ProductWithBatch,
    ReportDetail,
    RiceBatch,
    parse_report,
)
from errors import AlreadyExistsError, MalformedInputError, NotFoundError
from store import BatchStore

logger = logging.getLogger(__name__)


# ---------- Seed ----------
def _seed_report(report_id: str, summary: str, timestamp: str) -> ReportDetail:
    return ReportDetail(
        report_id=report_id,
        report_type="HarvestLog",
        report_hash="",
        summary=summary,
        is_verified=True,
        verification_source="seed",
        verification_timestamp=timestamp,
    )


SEED_BATCHES = [
    # batch_id, origin, variety, harvest_date, owner, step, report_id
    ("batch1", "Heilongjiang", "Japonica", "2024-09-15", "Farmer Zhang", "Harvested", "t1"),
    ("batch2", "Sichuan", "Indica", "2024-09-20", "Farmer Li", "Stored", "t2"),
]
SEED_PRODUCTS = [
    ("product1", "batch1", "Processor A"),
    ("product2", "batch2", "Processor B"),
]


def init_ledger(ctx) -> None:
    """Write the demo batches and products, overwriting any with the same keys."""
    authorize(ctx, Operation.INIT_LEDGER)
    store = BatchStore(ctx.stub)
    now = ctx.timestamp
    for batch_id, origin, variety, harvest_date, owner, step, report_id in SEED_BATCHES:
        report = _seed_report(report_id, f"{step} by {owner}", now)
        store.put(history.new_batch(batch_id, origin, variety, harvest_date, now, owner, step, report))
    for product_id, batch_id, owner in SEED_PRODUCTS:
        store.put_product(Product(product_id=product_id, batch_id=batch_id, package_date=now, owner=owner))
    logger.info("ledger seeded with %d batches, %d products", len(SEED_BATCHES), len(SEED_PRODUCTS))


# ---------- Mutations ----------
def create_batch(
    ctx,
    batch_id: str,
    origin: str,
    variety: str,
    harvest_date: str,
    initial_report: Any,
    owner: str,
    initial_step: str,
) -> RiceBatch:
    authorize(ctx, Operation.CREATE_BATCH)
    store = BatchStore(ctx.stub)
    if store.exists(batch_id):
        raise AlreadyExistsError("rice batch", batch_id)
    report = parse_report(initial_report, "initial report")

    try:
        batch = history.new_batch(
            batch_id, origin, variety, harvest_date, ctx.timestamp, owner, initial_step, report,
        )
    except ValidationError as exc:
        raise MalformedInputError("batch", str(exc)) from exc
    store.put(batch)
    logger.info("batch %s created for %s at step %s", batch_id, owner, initial_step)
    return batch


def advance_and_transfer(
    ctx,
    batch_id: str,
    from_party: str,
    to_party: str,
    step: str,
    report: Any,
) -> RiceBatch:
    """Append one lifecycle event; the only path for post-creation movement."""
    authorize(ctx, Operation.ADVANCE_AND_TRANSFER)
    return _advance(ctx, batch_id, from_party, to_party, step, report)


def _advance(ctx, batch_id, from_party, to_party, step, report, operator=None) -> RiceBatch:
    store = BatchStore(ctx.stub)
    batch = store.get(batch_id)
    detail = parse_report(report)

    history.append_event(batch, ctx.timestamp, from_party, to_party, step, detail, operator or None)
    store.put(batch)
    logger.info(
        "batch %s: %s -> %s at step %s (event %d)",
        batch_id, from_party or "<genesis>", to_party, step, len(batch.history),
    )
    return batch


def create_product(ctx, product_id: str, batch_id: str, package_date: str, owner: str) -> Product:
    authorize(ctx, Operation.CREATE_PRODUCT)
    store = BatchStore(ctx.stub)
    if store.product_exists(product_id):
        raise AlreadyExistsError("product", product_id)
    if not store.exists(batch_id):
        raise NotFoundError("rice batch", batch_id)

    try:
        product = Product(product_id=product_id, batch_id=batch_id, package_date=package_date, owner=owner)
    except ValidationError as exc:
        raise MalformedInputError("product", str(exc)) from exc
    store.put_product(product)
    logger.info("product %s packaged from batch %s", product_id, batch_id)
    return product


# ---------- Deprecated mutations ----------
# Older clients called these separately; each now appends one ordinary event.
def transfer_batch(ctx, batch_id: str, new_owner: str, operator: str) -> RiceBatch:
    authorize(ctx, Operation.TRANSFER_BATCH)
    batch = BatchStore(ctx.stub).get(batch_id)
    return _advance(
        ctx, batch_id, batch.current_owner, new_owner, batch.current_state, ReportDetail(), operator,
    )


def add_processing_record(ctx, batch_id: str, step: str, operator: str) -> RiceBatch:
    authorize(ctx, Operation.ADD_PROCESSING_RECORD)
    batch = BatchStore(ctx.stub).get(batch_id)
    return _advance(
        ctx, batch_id, batch.current_owner, batch.current_owner, step, ReportDetail(), operator,
    )


def add_test_result(ctx, batch_id: str, report: Any) -> RiceBatch:
    authorize(ctx, Operation.ADD_TEST_RESULT)
    batch = BatchStore(ctx.stub).get(batch_id)
    return _advance(ctx, batch_id, batch.current_owner, batch.current_owner, batch.current_state, report)


# ---------- Queries ----------
def batch_exists(ctx, batch_id: str) -> bool:
    return BatchStore(ctx.stub).exists(batch_id)


def read_batch(ctx, batch_id: str) -> RiceBatch:
    return BatchStore(ctx.stub).get(batch_id)


def get_all_batches(ctx) -> List[RiceBatch]:
    return list(BatchStore(ctx.stub).scan())


def get_batch_history(ctx, batch_id: str) -> List[HistoryEvent]:
    return BatchStore(ctx.stub).get(batch_id).history


def get_batch_current_status(ctx, batch_id: str) -> BatchStatus:
    return history.summarize(BatchStore(ctx.stub).get(batch_id))


def get_owner_history(ctx, batch_id: str) -> List[Dict[str, str]]:
    return history.owner_transfers(BatchStore(ctx.stub).get(batch_id))


def get_process_history(ctx, batch_id: str) -> List[Dict[str, str]]:
    return history.processing_records(BatchStore(ctx.stub).get(batch_id))


def product_exists(ctx, product_id: str) -> bool:
    return BatchStore(ctx.stub).product_exists(product_id)


def read_product(ctx, product_id: str) -> ProductWithBatch:
    store = BatchStore(ctx.stub)
    product = store.get_product(product_id)
    return ProductWithBatch(product=product, batch=store.get(product.batch_id))


def get_all_products(ctx) -> List[Product]:
    return list(BatchStore(ctx.stub).scan_products())


def get_caller_info(ctx) -> CallerInfo:
    role = resolve_role(ctx.credential)
    return CallerInfo(org_id=ctx.credential, role=role.value, role_name=role.display_name)


def get_permission_matrix(ctx) -> Dict[str, Any]:
    return permission_matrix()
