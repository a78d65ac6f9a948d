import json

import pytest

import history
from errors import MalformedInputError, NotFoundError
from ledger import LedgerStub
from schemas import Product, ReportDetail
from store import BatchStore


def put_raw(db, key, value):
    stub = LedgerStub(db)
    stub.put_state(key, value)
    stub.commit()


def make_batch(batch_id):
    return history.new_batch(
        batch_id, "Sichuan", "Indica", "2024-09-20", "2024-10-20T08:00:00.000Z", "FarmerLi", "Stored", ReportDetail(),
    )


def test_put_overwrites_whole_document(db):
    stub = LedgerStub(db)
    store = BatchStore(stub)
    batch = make_batch("b1")
    store.put(batch)
    stub.commit()

    stored = json.loads(LedgerStub(db).get_state("batch_b1"))
    assert stored["batchId"] == "b1"
    assert stored["docType"] == "riceBatch"
    assert [e["to"] for e in stored["history"]] == ["FarmerLi"]
    assert list(stored) == sorted(stored)


def test_get_missing_batch_raises_not_found(db):
    with pytest.raises(NotFoundError) as excinfo:
        BatchStore(LedgerStub(db)).get("nope")
    assert excinfo.value.key == "nope"


def test_corrupt_batch_fails_point_read(db):
    put_raw(db, "batch_bad", "not json")
    with pytest.raises(MalformedInputError):
        BatchStore(LedgerStub(db)).get("bad")


def test_scan_skips_corrupt_records(db):
    stub = LedgerStub(db)
    store = BatchStore(stub)
    store.put(make_batch("good"))
    stub.put_state("batch_bad", "not json")
    stub.put_state("batch_noid", json.dumps({"batchId": "", "origin": "o", "variety": "v", "harvestDate": "d"}))
    store.put_product(Product(product_id="p1", batch_id="good", package_date="2024-10-20", owner="X"))
    stub.commit()

    store = BatchStore(LedgerStub(db))
    assert [b.batch_id for b in store.scan()] == ["good"]
    assert [p.product_id for p in store.scan_products()] == ["p1"]


def test_product_round_trip_and_existence(db):
    stub = LedgerStub(db)
    BatchStore(stub).put_product(Product(product_id="p1", batch_id="b1", package_date="2024-10-20", owner="X"))
    stub.commit()

    store = BatchStore(LedgerStub(db))
    assert store.product_exists("p1")
    assert not store.product_exists("p2")
    assert store.get_product("p1").batch_id == "b1"
    with pytest.raises(NotFoundError):
        store.get_product("p2")


@pytest.mark.parametrize("tamper", [
    lambda b: setattr(b, "current_owner", "Mallory"),
    lambda b: setattr(b, "current_state", "Packaged"),
    lambda b: b.history.clear(),
])
def test_put_refuses_batch_that_disagrees_with_its_history(db, tamper):
    stub = LedgerStub(db)
    batch = make_batch("b1")
    tamper(batch)
    with pytest.raises(MalformedInputError):
        BatchStore(stub).put(batch)
    assert stub.write_set == {}

