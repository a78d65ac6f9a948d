import logging
from typing import Iterator, Type, TypeVar

from pydantic import ValidationError

import history
from errors import MalformedInputError, NotFoundError
from ledger import LedgerStub
from schemas import LabResult, LedgerModel, Product, QualityCertificate, RiceBatch
from utils import canonical_json

logger = logging.getLogger(__name__)

BATCH_PREFIX = "batch_"
PRODUCT_PREFIX = "product_"
TEST_PREFIX = "test_"
CERT_PREFIX = "cert_"
# end of a prefix range scan
RANGE_END = "\uffff"

M = TypeVar("M", bound=LedgerModel)


def batch_key(batch_id: str) -> str:
    return f"{BATCH_PREFIX}{batch_id}"


def product_key(product_id: str) -> str:
    return f"{PRODUCT_PREFIX}{product_id}"


def result_key(test_id: str) -> str:
    return f"{TEST_PREFIX}{test_id}"


def cert_key(certificate_id: str) -> str:
    return f"{CERT_PREFIX}{certificate_id}"


def _read(stub: LedgerStub, model: Type[M], key: str, kind: str, record_id: str) -> M:
    raw = stub.get_state(key)
    if not raw:
        raise NotFoundError(kind, record_id)
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedInputError(f"stored {kind} {record_id}", str(exc)) from exc


def _scan(stub: LedgerStub, model: Type[M], prefix: str, kind: str) -> Iterator[M]:
    for key, raw in stub.get_state_by_range(prefix, prefix + RANGE_END):
        try:
            yield model.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("skipping invalid %s record %s: %s", kind, key, exc.error_count())


class BatchStore:
    """Whole-document access to batch and product records.

    `put` / `put_product` replace the stored document; there is no field-level
    update, so callers read, modify in memory and write the full record back.
    A batch whose derived fields disagree with its history is never written.
    """

    def __init__(self, stub: LedgerStub):
        self.stub = stub

    # ---------- batches ----------
    def exists(self, batch_id: str) -> bool:
        return bool(self.stub.get_state(batch_key(batch_id)))

    def get(self, batch_id: str) -> RiceBatch:
        return _read(self.stub, RiceBatch, batch_key(batch_id), "rice batch", batch_id)

    def put(self, batch: RiceBatch) -> None:
        if not history.is_consistent(batch):
            raise MalformedInputError(
                f"batch {batch.batch_id}", "current owner/state do not match the newest history event",
            )
        self.stub.put_state(batch_key(batch.batch_id), canonical_json(batch.to_doc()))

    def scan(self) -> Iterator[RiceBatch]:
        return _scan(self.stub, RiceBatch, BATCH_PREFIX, "batch")

    # ---------- products ----------
    def product_exists(self, product_id: str) -> bool:
        return bool(self.stub.get_state(product_key(product_id)))

    def get_product(self, product_id: str) -> Product:
        return _read(self.stub, Product, product_key(product_id), "product", product_id)

    def put_product(self, product: Product) -> None:
        self.stub.put_state(product_key(product.product_id), canonical_json(product.to_doc()))

    def scan_products(self) -> Iterator[Product]:
        return _scan(self.stub, Product, PRODUCT_PREFIX, "product")


class QualityStore:
    """Lab test results (`test_` keys) and quality certificates (`cert_` keys)."""

    def __init__(self, stub: LedgerStub):
        self.stub = stub

    def result_exists(self, test_id: str) -> bool:
        return bool(self.stub.get_state(result_key(test_id)))

    def get_result(self, test_id: str) -> LabResult:
        return _read(self.stub, LabResult, result_key(test_id), "test result", test_id)

    def put_result(self, result: LabResult) -> None:
        self.stub.put_state(result_key(result.test_id), canonical_json(result.to_doc()))

    def scan_results(self) -> Iterator[LabResult]:
        return _scan(self.stub, LabResult, TEST_PREFIX, "test result")

    def certificate_exists(self, certificate_id: str) -> bool:
        return bool(self.stub.get_state(cert_key(certificate_id)))

    def get_certificate(self, certificate_id: str) -> QualityCertificate:
        return _read(self.stub, QualityCertificate, cert_key(certificate_id), "quality certificate", certificate_id)

    def put_certificate(self, certificate: QualityCertificate) -> None:
        self.stub.put_state(cert_key(certificate.certificate_id), canonical_json(certificate.to_doc()))

    def scan_certificates(self) -> Iterator[QualityCertificate]:
        return _scan(self.stub, QualityCertificate, CERT_PREFIX, "certificate")
