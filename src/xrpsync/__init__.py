"""Account synchronization and payment lifecycle for XRP Ledger accounts held on a signing device."""

from xrpsync.bridge import LedgerBridge
from xrpsync.caches import RecipientCache, ServerInfoCache
from xrpsync.events import BalanceUpdated, Broadcasted, OperationsMerged, Signed, apply_sync_event
from xrpsync.models import RIPPLE, Account, Operation, Transaction

__all__ = [
    "RIPPLE",
    "Account",
    "BalanceUpdated",
    "Broadcasted",
    "LedgerBridge",
    "Operation",
    "OperationsMerged",
    "RecipientCache",
    "ServerInfoCache",
    "Signed",
    "Transaction",
    "apply_sync_event",
]
