"""Events emitted by the sync and broadcast streams, and the reducers applying them.

Streams never touch the caller's account. They emit events and the caller folds
them into whatever snapshot it currently holds, in emission order.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from xrpsync.models import Account, LedgerTransaction, Operation, Transaction
from xrpsync.operations import add_pending_operation, merge_operations, reconcile_pending, tx_to_operation


@dataclass(slots=True, frozen=True)
class BalanceUpdated:
    kind: ClassVar[str] = "balance_updated"
    balance: Decimal


@dataclass(slots=True, frozen=True)
class OperationsMerged:
    kind: ClassVar[str] = "operations_merged"
    transactions: tuple[LedgerTransaction, ...]
    block_height: int
    synced_at: datetime


@dataclass(slots=True, frozen=True)
class Signed:
    kind: ClassVar[str] = "signed"


@dataclass(slots=True, frozen=True)
class Broadcasted:
    kind: ClassVar[str] = "broadcasted"
    operation: Operation
    transaction: Transaction  # the draft as broadcast, state BROADCAST


SyncEvent = BalanceUpdated | OperationsMerged
BroadcastEvent = Signed | Broadcasted


def apply_sync_event(account: Account, event: SyncEvent) -> Account:
    if isinstance(event, BalanceUpdated):
        return replace(account, balance=event.balance)
    if isinstance(event, OperationsMerged):
        fetched = (tx_to_operation(account.id, account.fresh_address, tx) for tx in event.transactions)
        operations = merge_operations(account.operations, fetched)
        return replace(
            account,
            operations=operations,
            pending_operations=reconcile_pending(account.pending_operations, operations),
            block_height=event.block_height,
            last_sync_date=event.synced_at,
        )
    raise TypeError(f"not a sync event: {event!r}")


def apply_broadcast_event(account: Account, event: BroadcastEvent) -> Account:
    if isinstance(event, Broadcasted):
        return add_pending(account, event.operation)
    return account


def add_pending(account: Account, operation: Operation) -> Account:
    return replace(account, pending_operations=add_pending_operation(account.pending_operations, operation))
