"""In-memory stand-ins for rippled, shared by the test modules."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal

from xrpl import CryptoAlgorithm
from xrpl.wallet import Wallet

import xrpsync.constants as C
from xrpsync.errors import AccountNotFoundError
from xrpsync.models import (
    RIPPLE,
    Account,
    AccountData,
    LedgerTransaction,
    PreparedTransaction,
    ServerInfo,
    SubmitResult,
    make_account_id,
)

GENESIS_SEED = "snoPBrXtMeMyMHUVTgbuqAfg1SUTb"
GENESIS_ADDRESS = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
OTHER_ADDRESS = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"


def genesis_wallet() -> Wallet:
    return Wallet.from_seed(GENESIS_SEED, algorithm=CryptoAlgorithm.SECP256K1)


def make_server_info(**kw) -> ServerInfo:
    fields = dict(
        min_ledger_version=100,
        max_ledger_version=200,
        base_fee=Decimal(10),
        reserve_base=Decimal(20),
        reserve_increment=Decimal(2),
        validated_ledger=200,
    )
    fields.update(kw)
    return ServerInfo(**fields)


def ltx(tx_hash, source, destination, delivered, *, fee=10, seq=1, ledger=150, day=1) -> LedgerTransaction:
    return LedgerTransaction(
        hash=tx_hash,
        transaction_type="Payment",
        source=source,
        destination=destination,
        delivered=Decimal(delivered),
        fee=Decimal(fee),
        date=datetime(2024, 1, day, tzinfo=timezone.utc),
        sequence=seq,
        ledger_index=ledger,
        result=C.SUCCESS_RESULT,
    )


class FakeLedger:
    def __init__(self, *, server_info: ServerInfo | None = None) -> None:
        self.server_info = server_info or make_server_info()
        self.accounts: dict[str, AccountData] = {}
        self.transactions: dict[str, list[LedgerTransaction]] = {}
        self.submit_result = SubmitResult(C.SUCCESS_RESULT, "The transaction was applied.")
        self.submit_error: Exception | None = None
        self.server_info_error: Exception | None = None
        self.account_info_error: Exception | None = None
        self.server_info_delay = 0.0
        self.calls: Counter = Counter()
        self.tx_queries: list[tuple[str, int, int]] = []
        self.submitted: list[str] = []
        self.open_connections = 0
        self.endpoints: list[str | None] = []

    def fund(self, address: str, balance, sequence: int = 1) -> None:
        self.accounts[address] = AccountData(address=address, balance=Decimal(balance), sequence=sequence)

    def api_factory(self, endpoint: str | None) -> "FakeAPI":
        self.endpoints.append(endpoint)
        return FakeAPI(self)


class FakeAPI:
    def __init__(self, ledger: FakeLedger) -> None:
        self.ledger = ledger

    async def connect(self) -> None:
        self.ledger.calls["connect"] += 1
        self.ledger.open_connections += 1

    async def disconnect(self) -> None:
        self.ledger.calls["disconnect"] += 1
        self.ledger.open_connections -= 1

    async def get_server_info(self) -> ServerInfo:
        self.ledger.calls["server_info"] += 1
        if self.ledger.server_info_delay:
            await asyncio.sleep(self.ledger.server_info_delay)
        if self.ledger.server_info_error is not None:
            raise self.ledger.server_info_error
        return self.ledger.server_info

    async def get_account_info(self, address: str) -> AccountData:
        self.ledger.calls["account_info"] += 1
        if self.ledger.account_info_error is not None:
            raise self.ledger.account_info_error
        try:
            return self.ledger.accounts[address]
        except KeyError:
            raise AccountNotFoundError(address) from None

    async def get_transactions(self, address, *, min_ledger_version, max_ledger_version, types=(C.TxType.PAYMENT,)):
        self.ledger.calls["account_tx"] += 1
        self.ledger.tx_queries.append((address, min_ledger_version, max_ledger_version))
        txs = [
            tx for tx in self.ledger.transactions.get(address, [])
            if min_ledger_version <= tx.ledger_index <= max_ledger_version and tx.transaction_type in types
        ]
        return sorted(txs, key=lambda tx: tx.ledger_index, reverse=True)

    async def prepare_payment(self, address, payment, instructions) -> PreparedTransaction:
        self.ledger.calls["prepare"] += 1
        max_ledger = self.ledger.server_info.max_ledger_version + instructions.max_ledger_version_offset
        tx = {
            "TransactionType": "Payment",
            "Account": address,
            "Destination": payment.destination_address,
            "Amount": str(int(payment.amount)),
            "Fee": str(int(instructions.fee)),
            "Sequence": self.ledger.accounts[address].sequence,
            "LastLedgerSequence": max_ledger,
        }
        if payment.destination_tag is not None:
            tx["DestinationTag"] = payment.destination_tag
        return PreparedTransaction(tx_json=tx, max_ledger_version=max_ledger)

    async def submit(self, signed_blob_hex: str) -> SubmitResult:
        self.ledger.calls["submit"] += 1
        if self.ledger.submit_error is not None:
            raise self.ledger.submit_error
        self.ledger.submitted.append(signed_blob_hex)
        return self.ledger.submit_result


async def collect(agen) -> list:
    return [item async for item in agen]


def make_account(**kw) -> Account:
    fields = dict(
        id=make_account_id(RIPPLE, GENESIS_ADDRESS, ""),
        currency_id=RIPPLE.id,
        derivation_mode="",
        index=0,
        seed_identifier=GENESIS_ADDRESS,
        name="XRP 1",
        fresh_address=GENESIS_ADDRESS,
        fresh_address_path="44'/144'/0'/0/0",
        balance=Decimal(0),
        block_height=0,
    )
    fields.update(kw)
    return Account(**fields)
