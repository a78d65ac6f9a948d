import json
from datetime import datetime, timezone
from typing import Any


def canonical_json(doc: Any) -> str:
    # every endorsing node must produce the same bytes for the same record
    return json.dumps(doc, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def iso_timestamp(ts: datetime) -> str:
    """Render a transaction time as ISO-8601 UTC, e.g. 2024-10-20T08:00:00.000Z."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"
