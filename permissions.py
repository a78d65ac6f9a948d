"""Caller identity and per-operation access policy.

The host platform hands every transaction an opaque organization credential
(an MSP id). It is resolved to a coarse Role through a static table; unknown
credentials get the least-privileged role rather than an error. Each
operation's allowed roles live in one table, checked before any state is
read or written.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List

from errors import PermissionDeniedError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    PRODUCER = "producer"
    INTERMEDIARY = "intermediary"
    VIEWER = "viewer"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Role.PRODUCER: "Farm",
    Role.INTERMEDIARY: "Middleman/Tester",
    Role.VIEWER: "Consumer",
}

ORG_ROLES: Dict[str, Role] = {
    "Org1MSP": Role.PRODUCER,
    "Org2MSP": Role.INTERMEDIARY,
    "Org3MSP": Role.VIEWER,
}


def resolve_role(credential: str) -> Role:
    return ORG_ROLES.get(credential, Role.VIEWER)


class Operation(str, Enum):
    INIT_LEDGER = "InitLedger"
    CREATE_BATCH = "CreateRiceBatch"
    ADVANCE_AND_TRANSFER = "AdvanceAndTransfer"
    CREATE_PRODUCT = "CreateProduct"
    # deprecated single-purpose mutations, kept as wrappers over AdvanceAndTransfer
    TRANSFER_BATCH = "TransferRiceBatch"
    ADD_PROCESSING_RECORD = "AddProcessingRecord"
    ADD_TEST_RESULT = "AddTestResult"
    # quality certification
    CREATE_TEST_RESULT = "CreateTestResult"
    CREATE_QUALITY_CERTIFICATE = "CreateQualityCertificate"
    VERIFY_TEST_RESULT = "VerifyTestResult"


_PRODUCER = frozenset({Role.PRODUCER})
_INTERMEDIARY = frozenset({Role.INTERMEDIARY})
_SUPPLY_CHAIN = frozenset({Role.PRODUCER, Role.INTERMEDIARY})

POLICY: Dict[Operation, FrozenSet[Role]] = {
    Operation.INIT_LEDGER: _PRODUCER,
    Operation.CREATE_BATCH: _PRODUCER,
    Operation.ADVANCE_AND_TRANSFER: _SUPPLY_CHAIN,
    Operation.CREATE_PRODUCT: _INTERMEDIARY,
    Operation.TRANSFER_BATCH: _SUPPLY_CHAIN,
    Operation.ADD_PROCESSING_RECORD: _SUPPLY_CHAIN,
    Operation.ADD_TEST_RESULT: _INTERMEDIARY,
    Operation.CREATE_TEST_RESULT: _SUPPLY_CHAIN,
    Operation.CREATE_QUALITY_CERTIFICATE: _INTERMEDIARY,
    Operation.VERIFY_TEST_RESULT: _INTERMEDIARY,
}

# reads carry no restriction; listed so the matrix is complete
READ_OPERATIONS = (
    "RiceBatchExists",
    "ReadRiceBatch",
    "ReadProduct",
    "ProductExists",
    "GetAllRiceBatches",
    "GetAllProducts",
    "GetBatchHistory",
    "GetBatchCurrentStatus",
    "GetOwnerHistory",
    "GetProcessHistory",
    "ReadTestResult",
    "ReadQualityCertificate",
    "GetAllTestResults",
    "GetAllQualityCertificates",
    "GetTestResultsByBatch",
    "GetCertificatesByBatch",
    "GetCallerInfo",
    "GetPermissionMatrix",
)

ALL_ORGANIZATIONS = "All Organizations"


def _names(roles: Iterable[Role]) -> List[str]:
    # enum declaration order keeps messages stable
    allowed = set(roles)
    return [r.display_name for r in Role if r in allowed]


def check_permission(ctx, allowed_roles: Iterable[Role]) -> None:
    role = resolve_role(ctx.credential)
    allowed = frozenset(allowed_roles)
    if role not in allowed:
        logger.warning(
            "permission denied for %s (%s) in tx %s",
            ctx.credential or "<anonymous>", role.display_name, ctx.tx_id,
        )
        raise PermissionDeniedError(role.display_name, _names(allowed))


def authorize(ctx, operation: Operation) -> None:
    check_permission(ctx, POLICY[operation])


def permission_matrix() -> Dict[str, object]:
    methods: Dict[str, List[str]] = {op.value: _names(roles) for op, roles in POLICY.items()}
    for name in READ_OPERATIONS:
        methods[name] = [ALL_ORGANIZATIONS]
    return {
        "methods": methods,
        "roles": {
            role.value: role.display_name for role in Role
        },
    }
