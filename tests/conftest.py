"""Shared fixtures: a fresh in-memory world state per test."""

import os
from datetime import datetime, timezone

# keep the module-level engine in database.py off the filesystem
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import init_db
from ledger import evaluate_transaction, submit_transaction

FARM = "Org1MSP"
MIDDLEMAN = "Org2MSP"
CONSUMER = "Org3MSP"
TX_TIME = datetime(2024, 10, 20, 8, 0, tzinfo=timezone.utc)

REPORT = {
    "reportId": "r-001",
    "reportType": "QualityTest",
    "reportHash": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
    "summary": "moisture 14.1%, no contaminants",
    "isVerified": True,
    "verificationSource": "LabCo",
}


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def submit(db):
    def _submit(org, fn, *args, timestamp=TX_TIME):
        return submit_transaction(db, org, fn, *args, timestamp=timestamp)
    return _submit


@pytest.fixture
def evaluate(db):
    def _evaluate(fn, *args, org=CONSUMER):
        return evaluate_transaction(db, org, fn, *args)
    return _evaluate


@pytest.fixture
def two_sessions(tmp_path):
    """Two sessions with their own connections to one file-backed world state."""
    eng = create_engine(f"sqlite:///{tmp_path / 'world_state.db'}")
    init_db(eng)
    make_session = sessionmaker(autocommit=False, autoflush=False, bind=eng)
    first, second = make_session(), make_session()
    yield first, second
    first.close()
    second.close()
    eng.dispose()
