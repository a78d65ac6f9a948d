import json
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from typing import Optional, Any, Dict, List, Union

from errors import MalformedInputError


class LedgerModel(BaseModel):
    """Snake_case in Python, camelCase on the ledger and over HTTP."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_doc(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- Ledger documents ----------
class ReportDetail(LedgerModel):
    report_id: str = ""
    report_type: str = ""  # HarvestLog, ShippingManifest, QualityTest, ...
    report_hash: str = ""  # hash of the off-chain file
    summary: str = ""
    is_verified: bool = False
    verification_source: Optional[str] = None
    verification_timestamp: Optional[str] = None
    notes: Optional[str] = None


class HistoryEvent(LedgerModel):
    timestamp: str
    from_: str = Field("", alias="from")
    to: str
    step: str
    report: ReportDetail = Field(default_factory=ReportDetail)
    # who performed the step when it differs from the receiving party (legacy calls)
    operator: Optional[str] = None


class RiceBatch(LedgerModel):
    doc_type: str = "riceBatch"
    batch_id: str = Field(..., min_length=1)
    origin: str
    variety: str
    harvest_date: str  # YYYY-MM-DD
    # only history.append_event writes these two
    current_owner: str = ""
    current_state: str = ""
    history: List[HistoryEvent] = Field(default_factory=list)


class Product(LedgerModel):
    doc_type: str = "product"
    product_id: str = Field(..., min_length=1)
    batch_id: str
    package_date: str
    owner: str


class LabResult(LedgerModel):
    """A lab test run against a batch; stored under `test_<testId>`."""
    doc_type: str = "testResult"
    test_id: str = Field(..., min_length=1)
    batch_id: str
    test_type: str
    test_date: str
    test_result: str
    tester: str
    notes: str = ""
    timestamp: str = ""  # transaction time of creation
    report_id: str = ""
    report_hash: str = ""
    is_verified: bool = False
    verification_source: str = ""
    verification_timestamp: str = ""


class QualityCertificate(LedgerModel):
    doc_type: str = "qualityCertificate"
    certificate_id: str = Field(..., min_length=1)
    batch_id: str
    test_ids: List[str] = Field(default_factory=list)
    certificate_type: str
    issue_date: str
    issuer: str
    validity_period: str
    standards: str
    is_active: bool = True
    created_timestamp: str = ""
    last_updated: str = ""


# ---------- Query results ----------
class ProductWithBatch(LedgerModel):
    product: Product
    batch: RiceBatch


class BatchStatus(LedgerModel):
    batch_id: str
    current_owner: str
    current_state: str
    variety: str
    origin: str
    harvest_date: str
    event_count: int
    last_updated: str


class CallerInfo(LedgerModel):
    org_id: str
    role: str
    role_name: str


# ---------- Request bodies ----------
class CreateBatch(LedgerModel):
    batch_id: str = Field(..., min_length=1, max_length=64)
    origin: str
    variety: str
    harvest_date: str
    initial_report: Dict[str, Any] = Field(default_factory=dict)
    owner: str
    initial_step: str


class AdvanceBatch(LedgerModel):
    from_party: str
    to_party: str
    step: str
    report: Dict[str, Any] = Field(default_factory=dict)


class CreateProduct(LedgerModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    batch_id: str
    package_date: str
    owner: str


class CreateLabResult(LedgerModel):
    test_id: str = Field(..., min_length=1, max_length=64)
    batch_id: str
    test_type: str
    test_date: str
    test_result: str
    tester: str
    notes: str = ""


class VerifyLabResult(LedgerModel):
    verification_source: str
    verification_notes: str = ""


class CreateCertificate(LedgerModel):
    certificate_id: str = Field(..., min_length=1, max_length=64)
    batch_id: str
    test_ids: List[str] = Field(default_factory=list)
    certificate_type: str
    issue_date: str
    issuer: str
    validity_period: str
    standards: str


def parse_report(payload: Union[str, bytes, Dict[str, Any], ReportDetail], what: str = "report") -> ReportDetail:
    """Accept a JSON string, a mapping or a ReportDetail; anything else is malformed."""
    if isinstance(payload, ReportDetail):
        return payload
    try:
        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload)
        return ReportDetail.model_validate(payload)
    except (ValueError, ValidationError) as exc:
        raise MalformedInputError(what, str(exc)) from exc
