"""
Walk one batch from harvest to a packaged and certified product
against a running API.
Run:
    python scripts/simulate_supply_chain.py
"""
import os
import time
import hashlib
import requests

API = os.getenv("API", "http://localhost:8000")

FARM = {"X-Org-Id": "Org1MSP"}
PROCESSOR = {"X-Org-Id": "Org2MSP"}
CONSUMER = {"X-Org-Id": "Org3MSP"}

STEPS = [
    # from, to, step, report type
    ("FarmerZ", "LogisticsCo", "Transporting", "ShippingManifest"),
    ("LogisticsCo", "ProcessorA", "QualityInspection", "QualityTest"),
    ("ProcessorA", "ProcessorA", "Processing", "ProcessingRecord"),
    ("ProcessorA", "ProcessorA", "Packaged", "PackagingRecord"),
]


def report(report_id, report_type, summary):
    return {
        "reportId": report_id,
        "reportType": report_type,
        "reportHash": hashlib.sha256(summary.encode("utf-8")).hexdigest(),
        "summary": summary,
        "isVerified": True,
        "verificationSource": "simulator",
    }


def main():
    r = requests.post(f"{API}/api/seed", headers=FARM)
    print("Seed:", r.status_code, r.json())

    batch_id = f"sim{int(time.time())}"
    rr = requests.post(f"{API}/api/batches", headers=FARM, json={
        "batchId": batch_id,
        "origin": "Heilongjiang",
        "variety": "Japonica",
        "harvestDate": time.strftime("%Y-%m-%d"),
        "initialReport": report(f"{batch_id}-r0", "HarvestLog", "harvested 12t"),
        "owner": "FarmerZ",
        "initialStep": "Harvested",
    })
    print("create:", rr.status_code, rr.text)

    for i, (src, dst, step, kind) in enumerate(STEPS, start=1):
        rr = requests.post(f"{API}/api/batches/{batch_id}/events", headers=PROCESSOR, json={
            "fromParty": src,
            "toParty": dst,
            "step": step,
            "report": report(f"{batch_id}-r{i}", kind, f"{step} ok"),
        })
        print(step, rr.status_code)
        time.sleep(1)

    rr = requests.post(f"{API}/api/products", headers=PROCESSOR, json={
        "productId": f"{batch_id}-p1",
        "batchId": batch_id,
        "packageDate": time.strftime("%Y-%m-%d"),
        "owner": "ProcessorA",
    })
    print("product:", rr.status_code, rr.text)

    test_id = f"{batch_id}-t1"
    rr = requests.post(f"{API}/api/tests", headers=PROCESSOR, json={
        "testId": test_id,
        "batchId": batch_id,
        "testType": "Moisture",
        "testDate": time.strftime("%Y-%m-%d"),
        "testResult": "14.1% pass",
        "tester": "ProcessorA lab",
    })
    print("test:", rr.status_code)
    rr = requests.post(f"{API}/api/tests/{test_id}/verify", headers=PROCESSOR, json={
        "verificationSource": "simulator", "verificationNotes": "auto-checked",
    })
    print("verify:", rr.status_code)
    rr = requests.post(f"{API}/api/certificates", headers=PROCESSOR, json={
        "certificateId": f"{batch_id}-c1",
        "batchId": batch_id,
        "testIds": [test_id],
        "certificateType": "GradeA",
        "issueDate": time.strftime("%Y-%m-%d"),
        "issuer": "simulator",
        "validityPeriod": "12 months",
        "standards": "GB/T 1354",
    })
    print("certificate:", rr.status_code, rr.text)

    rr = requests.get(f"{API}/api/batches/{batch_id}/status", headers=CONSUMER)
    print("status:", rr.json())


if __name__ == "__main__":
    main()
