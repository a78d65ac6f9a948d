"""Quality testing and certification transactions.

Test results and certificates are their own ledger records, linked to a batch
by id; they never append to the batch history. Same shape as contract.py:
authorize, check existence, build the record, write it whole.
"""

import logging
from typing import List, Sequence, Union

from pydantic import ValidationError

from errors import AlreadyExistsError, MalformedInputError, NotFoundError
from permissions import Operation, authorize
from schemas import LabResult, QualityCertificate
from store import BatchStore, QualityStore

logger = logging.getLogger(__name__)


def _split_ids(test_ids: Union[str, Sequence[str]]) -> List[str]:
    # older clients send "t1,t2"
    if isinstance(test_ids, str):
        test_ids = test_ids.split(",")
    return [t.strip() for t in test_ids if t and t.strip()]


# ---------- Mutations ----------
def create_test_result(
    ctx,
    test_id: str,
    batch_id: str,
    test_type: str,
    test_date: str,
    test_result: str,
    tester: str,
    notes: str = "",
) -> LabResult:
    authorize(ctx, Operation.CREATE_TEST_RESULT)
    quality = QualityStore(ctx.stub)
    if quality.result_exists(test_id):
        raise AlreadyExistsError("test result", test_id)
    if not BatchStore(ctx.stub).exists(batch_id):
        raise NotFoundError("rice batch", batch_id)

    now = ctx.timestamp
    try:
        result = LabResult(
            test_id=test_id,
            batch_id=batch_id,
            test_type=test_type,
            test_date=test_date,
            test_result=test_result,
            tester=tester,
            notes=notes or "",
            timestamp=now,
            report_id=test_id,
            report_hash=f"hash_{test_id}_{now}",
        )
    except ValidationError as exc:
        raise MalformedInputError("test result", str(exc)) from exc
    quality.put_result(result)
    logger.info("test %s (%s) recorded for batch %s by %s", test_id, test_type, batch_id, tester)
    return result


def create_quality_certificate(
    ctx,
    certificate_id: str,
    batch_id: str,
    test_ids: Union[str, Sequence[str]],
    certificate_type: str,
    issue_date: str,
    issuer: str,
    validity_period: str,
    standards: str,
) -> QualityCertificate:
    """Issue a certificate over a batch, citing test results taken on that batch."""
    authorize(ctx, Operation.CREATE_QUALITY_CERTIFICATE)
    quality = QualityStore(ctx.stub)
    if quality.certificate_exists(certificate_id):
        raise AlreadyExistsError("quality certificate", certificate_id)
    if not BatchStore(ctx.stub).exists(batch_id):
        raise NotFoundError("rice batch", batch_id)

    ids = _split_ids(test_ids)
    for test_id in ids:
        cited = quality.get_result(test_id)
        if cited.batch_id != batch_id:
            raise MalformedInputError("test ids", f"test {test_id} belongs to batch {cited.batch_id}")

    now = ctx.timestamp
    try:
        certificate = QualityCertificate(
            certificate_id=certificate_id,
            batch_id=batch_id,
            test_ids=ids,
            certificate_type=certificate_type,
            issue_date=issue_date,
            issuer=issuer,
            validity_period=validity_period,
            standards=standards,
            created_timestamp=now,
            last_updated=now,
        )
    except ValidationError as exc:
        raise MalformedInputError("quality certificate", str(exc)) from exc
    quality.put_certificate(certificate)
    logger.info("certificate %s issued for batch %s citing %d test(s)", certificate_id, batch_id, len(ids))
    return certificate


def verify_test_result(ctx, test_id: str, verification_source: str, verification_notes: str = "") -> LabResult:
    authorize(ctx, Operation.VERIFY_TEST_RESULT)
    quality = QualityStore(ctx.stub)
    result = quality.get_result(test_id)

    result.is_verified = True
    result.verification_source = verification_source
    result.verification_timestamp = ctx.timestamp
    note = f"Verification: {verification_notes}"
    result.notes = f"{result.notes}; {note}" if result.notes else note
    quality.put_result(result)
    logger.info("test %s verified by %s", test_id, verification_source)
    return result


# ---------- Queries ----------
def read_test_result(ctx, test_id: str) -> LabResult:
    return QualityStore(ctx.stub).get_result(test_id)


def read_quality_certificate(ctx, certificate_id: str) -> QualityCertificate:
    return QualityStore(ctx.stub).get_certificate(certificate_id)


def get_all_test_results(ctx) -> List[LabResult]:
    return list(QualityStore(ctx.stub).scan_results())


def get_all_quality_certificates(ctx) -> List[QualityCertificate]:
    return list(QualityStore(ctx.stub).scan_certificates())


def get_test_results_by_batch(ctx, batch_id: str) -> List[LabResult]:
    return [r for r in QualityStore(ctx.stub).scan_results() if r.batch_id == batch_id]


def get_certificates_by_batch(ctx, batch_id: str) -> List[QualityCertificate]:
    return [c for c in QualityStore(ctx.stub).scan_certificates() if c.batch_id == batch_id]
