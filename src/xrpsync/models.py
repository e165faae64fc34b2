"""Domain data structures: accounts, operations, drafts and parsed rippled results.

All amounts are in drops (``Decimal``). Snapshots are frozen dataclasses; every
transform returns a copy through ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from xrpl.core.addresscodec import is_valid_classic_address
from xrpl.utils import drops_to_xrp, ripple_time_to_datetime, xrp_to_drops

import xrpsync.constants as C
from xrpsync.errors import InvalidBalanceError, NetworkError


@dataclass(slots=True, frozen=True)
class Unit:
    name: str
    code: str
    magnitude: int


@dataclass(slots=True, frozen=True)
class Currency:
    id: str
    name: str
    ticker: str
    coin_type: int
    units: tuple[Unit, ...]
    derivation_modes: tuple[str, ...] = ("",)


RIPPLE = Currency(
    id="ripple",
    name="XRP",
    ticker="XRP",
    coin_type=144,
    units=(Unit("XRP", "XRP", 6), Unit("drop", "drop", 0)),
)


def now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Amount helpers
# ---------------------------------------------------------------------------

def parse_drops(value: Any, address: str = "") -> Decimal:
    """Parse a drops amount, refusing anything that is not finite and non-negative."""
    try:
        drops = Decimal(str(value))
    except InvalidOperation:
        raise InvalidBalanceError(f"invalid balance={value!r} for address {address}") from None
    if not drops.is_finite() or drops < 0:
        raise InvalidBalanceError(f"invalid balance={value!r} for address {address}")
    return drops


def xrp_value_to_drops(value: Any) -> Decimal:
    """server_info reports XRP as numbers (``1e-05``); convert them to drops."""
    return Decimal(xrp_to_drops(Decimal(str(value))))


def format_drops(drops: Decimal) -> str:
    # newer xrpl-py quantizes to 6 places
    return f"XRP {format(drops_to_xrp(str(int(drops))).normalize(), 'f')}"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def is_valid_address(address: str) -> bool:
    return bool(address) and is_valid_classic_address(address)


def make_account_id(currency: Currency, address: str, derivation_mode: str) -> str:
    return f"{C.ACCOUNT_ID_PREFIX}:{currency.id}:{address}:{derivation_mode}"


def make_operation_id(account_id: str, tx_hash: str, op_type: C.OperationType) -> str:
    return f"{account_id}-{tx_hash}-{op_type}"


def account_placeholder_name(currency: Currency, index: int, derivation_mode: str) -> str:
    name = f"{currency.name} {index + 1}"
    return f"{name} ({derivation_mode})" if derivation_mode else name


def new_account_placeholder_name(currency: Currency, index: int, derivation_mode: str) -> str:
    return f"New {currency.name} account"


# ---------------------------------------------------------------------------
# Account model
# ---------------------------------------------------------------------------

@dataclass(slots=True, frozen=True)
class Operation:
    id: str
    hash: str
    account_id: str
    type: C.OperationType
    value: Decimal  # OUT values include the fee
    fee: Decimal
    senders: tuple[str, ...]
    recipients: tuple[str, ...]
    date: datetime
    transaction_sequence_number: int | None
    block_height: int | None = None  # None while pending
    block_hash: str | None = None


@dataclass(slots=True, frozen=True)
class Account:
    id: str
    currency_id: str
    derivation_mode: str
    index: int
    seed_identifier: str
    name: str
    fresh_address: str
    fresh_address_path: str
    balance: Decimal
    block_height: int
    operations: tuple[Operation, ...] = ()
    pending_operations: tuple[Operation, ...] = ()
    last_sync_date: datetime = field(default_factory=now)
    endpoint_config: str | None = None
    archived: bool = False

    def __str__(self):
        return f"{self.name} -- {self.fresh_address} -- {self.balance} drops"


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    server_fee: Decimal


@dataclass(slots=True, frozen=True)
class Transaction:
    """In-flight payment draft. Edit helpers in ``xrpsync.transaction`` return copies."""

    amount: Decimal = Decimal(0)
    recipient: str = ""
    fee: Decimal | None = None
    network_info: NetworkInfo | None = None
    tag: int | None = None
    fee_custom_unit: Unit | None = None
    state: C.LifecycleState = C.LifecycleState.DRAFT


# ---------------------------------------------------------------------------
# Parsed rippled results
# ---------------------------------------------------------------------------

@dataclass(slots=True, frozen=True)
class ServerInfo:
    """Ledger-wide metadata from ``server_info``. Fees and reserves in drops."""

    min_ledger_version: int
    max_ledger_version: int
    base_fee: Decimal
    reserve_base: Decimal
    reserve_increment: Decimal
    validated_ledger: int | None = None

    @classmethod
    def from_server_info_result(cls, result: dict) -> "ServerInfo":
        """Parse a ``server_info`` result.

        ``complete_ledgers`` may hold several ranges (``"32570-100,105-200"``);
        only the most recent contiguous range is usable for history queries.
        """
        info = result["info"]
        complete = info.get("complete_ledgers", "empty")
        if not complete or complete == "empty":
            raise NetworkError("server has no complete ledgers")
        lo, _, hi = complete.split(",")[-1].strip().partition("-")
        ledger = info.get("validated_ledger") or info.get("closed_ledger") or {}
        return cls(
            min_ledger_version=int(lo),
            max_ledger_version=int(hi or lo),
            base_fee=xrp_value_to_drops(ledger["base_fee_xrp"]),
            reserve_base=xrp_value_to_drops(ledger["reserve_base_xrp"]),
            reserve_increment=xrp_value_to_drops(ledger["reserve_inc_xrp"]),
            validated_ledger=ledger.get("seq"),
        )


@dataclass(slots=True, frozen=True)
class AccountData:
    address: str
    balance: Decimal
    sequence: int
    owner_count: int = 0

    @classmethod
    def from_account_info_result(cls, result: dict) -> "AccountData":
        data = result["account_data"]
        return cls(
            address=data["Account"],
            balance=parse_drops(data["Balance"], data["Account"]),
            sequence=int(data["Sequence"]),
            owner_count=int(data.get("OwnerCount", 0)),
        )


@dataclass(slots=True, frozen=True)
class LedgerTransaction:
    """A payment as returned by ``account_tx``, reduced to what operations need."""

    hash: str
    transaction_type: str
    source: str
    destination: str
    delivered: Decimal
    fee: Decimal
    date: datetime
    sequence: int | None
    ledger_index: int | None
    result: str | None = None

    @classmethod
    def from_account_tx_entry(cls, entry: dict) -> "LedgerTransaction | None":
        """Parse an ``account_tx`` entry (API v1 ``tx`` or v2 ``tx_json`` shape).

        Returns None for entries without JSON metadata or for non-XRP deliveries.
        """
        tx = entry.get("tx_json") or entry.get("tx") or {}
        meta = entry.get("meta")
        if not tx or not isinstance(meta, dict):
            return None

        result = meta.get("TransactionResult")
        if result == C.SUCCESS_RESULT:
            delivered = meta.get("delivered_amount", meta.get("DeliveredAmount"))
            if delivered in (None, "unavailable"):
                delivered = tx.get("Amount", tx.get("DeliverMax"))
            if not isinstance(delivered, str):
                return None  # issued currency
        else:
            delivered = "0"  # failed payments still burn the fee

        if "date" in tx:
            date = ripple_time_to_datetime(int(tx["date"]))
        elif entry.get("close_time_iso"):
            date = datetime.fromisoformat(entry["close_time_iso"].replace("Z", "+00:00"))
        else:
            date = now()

        ledger_index = entry.get("ledger_index", tx.get("ledger_index"))
        return cls(
            hash=entry.get("hash") or tx["hash"],
            transaction_type=tx.get("TransactionType", ""),
            source=tx["Account"],
            destination=tx.get("Destination", ""),
            delivered=Decimal(delivered),
            fee=Decimal(tx.get("Fee", "0")),
            date=date,
            sequence=tx.get("Sequence"),
            ledger_index=int(ledger_index) if ledger_index is not None else None,
            result=result,
        )


@dataclass(slots=True, frozen=True)
class PreparedTransaction:
    tx_json: dict[str, Any]
    max_ledger_version: int | None = None


@dataclass(slots=True, frozen=True)
class SubmitResult:
    result_code: str
    result_message: str | None = None
    tx_hash: str | None = None

    @classmethod
    def from_submit_result(cls, result: dict) -> "SubmitResult":
        return cls(
            result_code=result.get("engine_result", ""),
            result_message=result.get("engine_result_message"),
            tx_hash=result.get("tx_json", {}).get("hash"),
        )
