"""Error kinds raised by the transaction logic and the ledger.

Every error carries a stable code and the HTTP status the API layer maps it
to. The core never recovers from these itself; they abort the transaction.
"""

from typing import Any, Dict, Optional


class TraceChainError(Exception):
    """Base exception for all TraceChain failures."""

    code = "TRACECHAIN_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class AlreadyExistsError(TraceChainError):
    """Creation attempted against an existing batch or product key."""

    code = "ALREADY_EXISTS"
    http_status = 409

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} already exists", {"kind": kind, "id": key})
        self.kind = kind
        self.key = key


class NotFoundError(TraceChainError):
    """Read or mutation referencing a key that does not exist."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} {key} does not exist", {"kind": kind, "id": key})
        self.kind = kind
        self.key = key


class PermissionDeniedError(TraceChainError):
    code = "PERMISSION_DENIED"
    http_status = 403

    def __init__(self, caller: str, allowed: list):
        names = ", ".join(allowed)
        super().__init__(
            f"Permission denied: only the following organization types can call: {names}",
            {"caller": caller, "allowed": allowed},
        )
        self.allowed = allowed


class MalformedInputError(TraceChainError):
    """A structured payload could not be parsed into its expected shape."""

    code = "MALFORMED_INPUT"
    http_status = 400

    def __init__(self, what: str, reason: str):
        super().__init__(f"malformed {what}: {reason}", {"field": what})
        self.field = what


class ReadConflictError(TraceChainError):
    """A key read by the transaction was committed by another one first."""

    code = "MVCC_READ_CONFLICT"
    http_status = 409

    def __init__(self, tx_id: str, key: str):
        super().__init__(
            f"transaction {tx_id} rejected: {key} changed since it was read",
            {"tx_id": tx_id, "key": key},
        )
        self.key = key
