"""Payment lifecycle: draft -> network enriched -> validated -> signed -> broadcast.

Drafts are immutable; every edit returns a copy and drops the draft back to
DRAFT so it has to be validated again.
"""

import asyncio
import hashlib
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, AsyncIterator

import xrpsync.constants as C
from xrpsync.caches import RecipientCache, ServerInfoCache
from xrpsync.device import Device, open_transport, sign_transaction
from xrpsync.errors import (
    DestinationNotCreatedError,
    FeeNotLoadedError,
    InvalidAddressError,
    InvalidInputError,
    NotEnoughBalanceError,
    RemoteRejectionError,
    SubmissionError,
)
from xrpsync.events import BroadcastEvent, Broadcasted, Signed
from xrpsync.models import (
    RIPPLE,
    Account,
    Currency,
    NetworkInfo,
    Operation,
    Transaction,
    Unit,
    format_drops,
    is_valid_address,
    make_operation_id,
    now,
)
from xrpsync.network import ApiFactory, PaymentInstructions, PaymentSpec, api_for_endpoint_config, connected

log = logging.getLogger("xrpsync.transaction")


def _sha512half(b: bytes) -> bytes:
    return hashlib.sha512(b).digest()[:32]


def compute_transaction_hash(signed_blob_hex: str) -> str:
    # XRPL txid = SHA512Half(0x54584E00 || signed_bytes)
    return _sha512half(bytes.fromhex("54584E00") + bytes.fromhex(signed_blob_hex)).hex().upper()


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------

def create_transaction() -> Transaction:
    return Transaction()


def _drops(value: Any, what: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidInputError(f"{what}: int or Decimal drops expected, got {type(value).__name__}")
    value = Decimal(value)
    if not value.is_finite() or value < 0 or value != value.to_integral_value():
        raise InvalidInputError(f"{what}: non-negative whole drops expected, got {value}")
    return value


def edit_transaction_amount(t: Transaction, amount: int | Decimal) -> Transaction:
    return replace(t, amount=_drops(amount, "amount"), state=C.LifecycleState.DRAFT)


def edit_transaction_recipient(t: Transaction, recipient: str) -> Transaction:
    if not isinstance(recipient, str):
        raise InvalidInputError(f"recipient: str expected, got {type(recipient).__name__}")
    return replace(t, recipient=recipient.strip(), state=C.LifecycleState.DRAFT)


def edit_transaction_extra(t: Transaction, field: str, value: Any) -> Transaction:
    """Edit ``fee``, ``tag`` or ``feeCustomUnit``. Unknown fields leave ``t`` untouched."""
    if field == "fee":
        fee = None if value is None else _drops(value, "fee")
        return replace(t, fee=fee, state=C.LifecycleState.DRAFT)
    if field == "tag":
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise InvalidInputError(f"tag: int expected, got {type(value).__name__}")
        if value is not None and not 0 <= value < 2**32:
            raise InvalidInputError(f"tag: {value} is not a 32-bit unsigned integer")
        return replace(t, tag=value, state=C.LifecycleState.DRAFT)
    if field == "feeCustomUnit":
        if not isinstance(value, Unit):
            raise InvalidInputError("feeCustomUnit: Unit expected")
        return replace(t, fee_custom_unit=value)
    return t


def get_transaction_extra(t: Transaction, field: str) -> Any:
    return {"fee": t.fee, "tag": t.tag, "feeCustomUnit": t.fee_custom_unit}.get(field)


def get_total_spent(account: Account, t: Transaction) -> Decimal:
    return t.amount + (t.fee or 0)


def get_max_amount(account: Account, t: Transaction) -> Decimal:
    return max(account.balance - (t.fee or 0), Decimal(0))


def check_valid_recipient(currency: Currency, recipient: str) -> None:
    if not is_valid_address(recipient):
        raise InvalidAddressError(recipient, currency.name)


def get_recipient_warning(currency: Currency, recipient: str) -> None:
    return None


# ---------------------------------------------------------------------------
# Network enrichment
# ---------------------------------------------------------------------------

async def fetch_transaction_network_info(
    account: Account, *, api_factory: ApiFactory = api_for_endpoint_config
) -> NetworkInfo:
    async with connected(api_factory(account.endpoint_config)) as api:
        info = await api.get_server_info()
    return NetworkInfo(server_fee=info.base_fee)


def apply_transaction_network_info(t: Transaction, network_info: NetworkInfo) -> Transaction:
    return replace(
        t,
        network_info=network_info,
        fee=t.fee or network_info.server_fee,
        state=C.LifecycleState.NETWORK_ENRICHED,
    )


async def prepare_transaction(
    account: Account, t: Transaction, *, api_factory: ApiFactory = api_for_endpoint_config
) -> Transaction:
    """Fetch fresh network info and attach it. Safe to call after every edit."""
    return apply_transaction_network_info(t, await fetch_transaction_network_info(account, api_factory=api_factory))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

async def validate_transaction(
    account: Account,
    t: Transaction,
    *,
    server_info_cache: ServerInfoCache,
    recipient_cache: RecipientCache,
    currency: Currency = RIPPLE,
) -> Transaction:
    """Return ``t`` marked VALIDATED or raise the first failing business rule.

    Order: fee loaded, address syntax, destination creation, balance.
    """
    if not t.fee:
        raise FeeNotLoadedError()
    check_valid_recipient(currency, t.recipient)

    endpoint = account.endpoint_config
    reserve = (await server_info_cache.get(endpoint)).reserve_base
    if t.amount < reserve and await recipient_cache.is_recipient_new(endpoint, t.recipient):
        raise DestinationNotCreatedError(reserve, format_drops(reserve))
    if t.amount + t.fee + reserve > account.balance:
        raise NotEnoughBalanceError()
    return replace(t, state=C.LifecycleState.VALIDATED)


# ---------------------------------------------------------------------------
# Sign and broadcast
# ---------------------------------------------------------------------------

def predict_sequence_number(account: Account) -> int:
    # rippled only reports the sequence once validated; best effort guess
    last = 0
    if account.operations:
        last = account.operations[0].transaction_sequence_number or 0
    return last + len(account.pending_operations) + 1


def build_pending_operation(account: Account, t: Transaction, tx_hash: str) -> Operation:
    return Operation(
        id=make_operation_id(account.id, tx_hash, C.OperationType.OUT),
        hash=tx_hash,
        account_id=account.id,
        type=C.OperationType.OUT,
        value=t.amount,
        fee=t.fee,
        senders=(account.fresh_address,),
        recipients=(t.recipient,),
        date=now(),
        transaction_sequence_number=predict_sequence_number(account),
    )


async def sign_and_broadcast(
    account: Account,
    t: Transaction,
    device_id: str,
    *,
    device: Device,
    server_info_cache: ServerInfoCache,
    recipient_cache: RecipientCache,
    api_factory: ApiFactory = api_for_endpoint_config,
    currency: Currency = RIPPLE,
    max_ledger_version_offset: int = C.MAX_LEDGER_VERSION_OFFSET,
    stop: asyncio.Event | None = None,
) -> AsyncIterator[BroadcastEvent]:
    """Validate, sign on the device, submit. Yields Signed then Broadcasted.

    ``stop`` is checked once, after signing: if set, the signature is discarded
    and nothing is submitted. Once submission starts it runs to completion.
    """
    t = await validate_transaction(
        account, t, server_info_cache=server_info_cache, recipient_cache=recipient_cache, currency=currency
    )

    async with connected(api_factory(account.endpoint_config)) as api:
        prepared = await api.prepare_payment(
            account.fresh_address,
            PaymentSpec(
                source_address=account.fresh_address,
                amount=t.amount,
                destination_address=t.recipient,
                destination_tag=t.tag,
            ),
            PaymentInstructions(fee=t.fee, max_ledger_version_offset=max_ledger_version_offset),
        )

        async with open_transport(device, device_id) as transport:
            signed = await sign_transaction(device, transport, currency, account.fresh_address_path, prepared.tx_json)

        if stop is not None and stop.is_set():
            log.info("cancelled after signing, %s -> %s not broadcast", account.fresh_address, t.recipient)
            return
        t = replace(t, state=C.LifecycleState.SIGNED)
        yield Signed()

        try:
            result = await api.submit(signed)
        except RemoteRejectionError as e:
            raise SubmissionError(e.code or "error", e.message) from e
        if result.result_code != C.SUCCESS_RESULT:
            log.warning("submit rejected: %s %s", result.result_code, result.result_message)
            raise SubmissionError(result.result_code, result.result_message)

    tx_hash = compute_transaction_hash(signed)
    recipient_cache.evict(t.recipient)  # its funded status is about to change
    log.info("broadcast %s: %s -> %s amount=%s fee=%s", tx_hash, account.fresh_address, t.recipient, t.amount, t.fee)
    yield Broadcasted(
        operation=build_pending_operation(account, t, tx_hash),
        transaction=replace(t, state=C.LifecycleState.BROADCAST),
    )
