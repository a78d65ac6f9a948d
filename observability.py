"""Logging setup: JSON lines for deployments, plain text for local runs."""

import json
import logging
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("tx_id", "path", "error_code"):
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    # repeated calls (reloads, tests) must not stack handlers
    for existing in list(root.handlers):
        if getattr(existing, "_tracechain", False):
            root.removeHandler(existing)
    handler._tracechain = True
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
