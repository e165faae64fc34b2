from enum import StrEnum
from typing import Final

DEFAULT_ENDPOINT: Final = "wss://s2.ripple.com"


class OperationType(StrEnum):
    IN  = "IN"
    OUT = "OUT"


class TxType(StrEnum):
    PAYMENT = "Payment"


class LifecycleState(StrEnum):
    DRAFT            = "DRAFT"
    NETWORK_ENRICHED = "NETWORK_ENRICHED"
    VALIDATED        = "VALIDATED"
    SIGNED           = "SIGNED"
    BROADCAST        = "BROADCAST"


SERVER_INFO_TTL = 60.0  # seconds a successful server_info stays fresh
MAX_LEDGER_VERSION_OFFSET = 12  # LastLedgerSequence = validated + offset
MAX_ITERABLE_ACCOUNTS = 255
RPC_TIMEOUT = 10.0
SUCCESS_RESULT: Final = "tesSUCCESS"
ACCOUNT_NOT_FOUND: Final = "actNotFound"
ACCOUNT_ID_PREFIX: Final = "ripplejs:2"

__all__ = [
    "ACCOUNT_ID_PREFIX",
    "ACCOUNT_NOT_FOUND",
    "DEFAULT_ENDPOINT",
    "MAX_ITERABLE_ACCOUNTS",
    "MAX_LEDGER_VERSION_OFFSET",
    "RPC_TIMEOUT",
    "SERVER_INFO_TTL",
    "SUCCESS_RESULT",

    ######
    "LifecycleState",
    "OperationType",
    "TxType",
]
