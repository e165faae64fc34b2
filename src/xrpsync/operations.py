"""Operation history reconciliation. Everything here is pure."""

from collections.abc import Iterable, Sequence

import xrpsync.constants as C
from xrpsync.models import LedgerTransaction, Operation, make_operation_id


def tx_to_operation(account_id: str, fresh_address: str, tx: LedgerTransaction) -> Operation:
    op_type = C.OperationType.OUT if tx.source == fresh_address else C.OperationType.IN
    value = tx.delivered + tx.fee if op_type == C.OperationType.OUT else tx.delivered
    return Operation(
        id=make_operation_id(account_id, tx.hash, op_type),
        hash=tx.hash,
        account_id=account_id,
        type=op_type,
        value=value,
        fee=tx.fee,
        senders=(tx.source,),
        recipients=(tx.destination,),
        date=tx.date,
        transaction_sequence_number=tx.sequence,
        block_height=tx.ledger_index,
    )


def merge_operations(existing: Sequence[Operation], fetched: Iterable[Operation]) -> tuple[Operation, ...]:
    """Union by id, existing entries winning, sorted by date descending."""
    ids = {op.id for op in existing}
    merged = list(existing)
    for op in fetched:
        if op.id not in ids:
            ids.add(op.id)
            merged.append(op)
    merged.sort(key=lambda op: op.date, reverse=True)
    return tuple(merged)


def reconcile_pending(
    pending: Sequence[Operation], confirmed: Sequence[Operation]
) -> tuple[Operation, ...]:
    """Drop pending operations that were confirmed or superseded.

    ``confirmed`` must be sorted newest first. A pending operation survives only
    if its hash is not confirmed and its sequence number is strictly greater
    than the newest confirmed one's.
    """
    confirmed_hashes = {op.hash for op in confirmed}
    last_seq = confirmed[0].transaction_sequence_number if confirmed else None

    def keep(op: Operation) -> bool:
        if op.hash in confirmed_hashes:
            return False
        if last_seq is None:
            return True
        return op.transaction_sequence_number is not None and op.transaction_sequence_number > last_seq

    return tuple(op for op in pending if keep(op))


def add_pending_operation(pending: Sequence[Operation], operation: Operation) -> tuple[Operation, ...]:
    """Put ``operation`` first, replacing any pending entry with its id or sequence number."""
    rest = tuple(
        op for op in pending
        if op.id != operation.id
        and op.transaction_sequence_number != operation.transaction_sequence_number
    )
    return (operation, *rest)
