import os
import io
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Depends, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlalchemy.orm import Session

import qrcode

import contract
import quality
from database import SessionLocal, init_db
from errors import TraceChainError
from ledger import evaluate_transaction, submit_transaction
from observability import setup_logging
from schemas import (
    AdvanceBatch,
    BatchStatus,
    CallerInfo,
    CreateBatch,
    CreateCertificate,
    CreateLabResult,
    CreateProduct,
    HistoryEvent,
    LabResult,
    Product,
    ProductWithBatch,
    QualityCertificate,
    RiceBatch,
    VerifyLabResult,
)

# ---------- Config ----------
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
setup_logging(os.getenv("LOG_LEVEL", "INFO"), os.getenv("LOG_FORMAT", "text"))
logger = logging.getLogger(__name__)

app = FastAPI(title="Rice TraceChain", version="0.2.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # restrict to known front-ends in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TraceChainError)
async def tracechain_error_handler(request: Request, exc: TraceChainError):
    logger.warning(
        "%s: %s", exc.code, exc.message,
        extra={"error_code": exc.code, "path": request.url.path},
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


# ---------- DB ----------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def on_startup():
    init_db()


def caller(x_org_id: Optional[str] = Header(None)) -> str:
    # missing header resolves to the viewer role
    return x_org_id or ""


# ---------- Seed & identity ----------
@app.post("/api/seed")
def seed(org: str = Depends(caller), db: Session = Depends(get_db)):
    submit_transaction(db, org, contract.init_ledger)
    return {"status": "seeded", "batches": [b[0] for b in contract.SEED_BATCHES]}


@app.get("/api/caller", response_model=CallerInfo)
def caller_info(org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.get_caller_info)


@app.get("/api/permissions")
def permissions(org: str = Depends(caller), db: Session = Depends(get_db)) -> Dict[str, Any]:
    return evaluate_transaction(db, org, contract.get_permission_matrix)


# ---------- Batches ----------
@app.get("/api/batches", response_model=List[RiceBatch])
def list_batches(org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.get_all_batches)


@app.post("/api/batches", response_model=RiceBatch)
def create_batch(body: CreateBatch, org: str = Depends(caller), db: Session = Depends(get_db)):
    return submit_transaction(
        db, org, contract.create_batch,
        body.batch_id, body.origin, body.variety, body.harvest_date,
        body.initial_report, body.owner, body.initial_step,
    )


@app.get("/api/batches/{batch_id}", response_model=RiceBatch)
def read_batch(batch_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.read_batch, batch_id)


@app.get("/api/batches/{batch_id}/exists")
def batch_exists(batch_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return {"batchId": batch_id, "exists": evaluate_transaction(db, org, contract.batch_exists, batch_id)}


@app.get("/api/batches/{batch_id}/history", response_model=List[HistoryEvent])
def batch_history(batch_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.get_batch_history, batch_id)


@app.get("/api/batches/{batch_id}/status", response_model=BatchStatus)
def batch_status(batch_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.get_batch_current_status, batch_id)


@app.post("/api/batches/{batch_id}/events", response_model=RiceBatch)
def advance_batch(batch_id: str, body: AdvanceBatch, org: str = Depends(caller), db: Session = Depends(get_db)):
    return submit_transaction(
        db, org, contract.advance_and_transfer,
        batch_id, body.from_party, body.to_party, body.step, body.report,
    )


# ---------- Products ----------
@app.get("/api/products", response_model=List[Product])
def list_products(org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.get_all_products)


@app.post("/api/products", response_model=Product)
def create_product(body: CreateProduct, org: str = Depends(caller), db: Session = Depends(get_db)):
    return submit_transaction(
        db, org, contract.create_product,
        body.product_id, body.batch_id, body.package_date, body.owner,
    )


@app.get("/api/products/{product_id}", response_model=ProductWithBatch)
def read_product(product_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, contract.read_product, product_id)


@app.get("/api/products/{product_id}/qrcode")
def product_qrcode(product_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    evaluate_transaction(db, org, contract.read_product, product_id)
    url = f"{BASE_URL}/trace?product_id={product_id}"
    img = qrcode.make(url)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return Response(content=buf.getvalue(), media_type="image/png")


# ---------- Quality tests & certificates ----------
@app.get("/api/tests", response_model=List[LabResult])
def list_tests(org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, quality.get_all_test_results)


@app.post("/api/tests", response_model=LabResult)
def create_test(body: CreateLabResult, org: str = Depends(caller), db: Session = Depends(get_db)):
    return submit_transaction(
        db, org, quality.create_test_result,
        body.test_id, body.batch_id, body.test_type, body.test_date,
        body.test_result, body.tester, body.notes,
    )


@app.get("/api/tests/{test_id}", response_model=LabResult)
def read_test(test_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, quality.read_test_result, test_id)


@app.post("/api/tests/{test_id}/verify", response_model=LabResult)
def verify_test(test_id: str, body: VerifyLabResult, org: str = Depends(caller), db: Session = Depends(get_db)):
    return submit_transaction(
        db, org, quality.verify_test_result,
        test_id, body.verification_source, body.verification_notes,
    )


@app.get("/api/certificates", response_model=List[QualityCertificate])
def list_certificates(org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, quality.get_all_quality_certificates)


@app.post("/api/certificates", response_model=QualityCertificate)
def create_certificate(body: CreateCertificate, org: str = Depends(caller), db: Session = Depends(get_db)):
    return submit_transaction(
        db, org, quality.create_quality_certificate,
        body.certificate_id, body.batch_id, body.test_ids, body.certificate_type,
        body.issue_date, body.issuer, body.validity_period, body.standards,
    )


@app.get("/api/certificates/{certificate_id}", response_model=QualityCertificate)
def read_certificate(certificate_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, quality.read_quality_certificate, certificate_id)


@app.get("/api/batches/{batch_id}/tests", response_model=List[LabResult])
def batch_tests(batch_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, quality.get_test_results_by_batch, batch_id)


@app.get("/api/batches/{batch_id}/certificates", response_model=List[QualityCertificate])
def batch_certificates(batch_id: str, org: str = Depends(caller), db: Session = Depends(get_db)):
    return evaluate_transaction(db, org, quality.get_certificates_by_batch, batch_id)
