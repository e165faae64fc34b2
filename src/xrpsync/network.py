# xrpsync/network.py
"""
Narrow adapter over xrpl-py clients exposing the handful of rippled calls the
sync engine, discovery and the transaction lifecycle need.

Connections are scoped: use ``connected(api)`` so ``disconnect()`` runs on
every exit path.
"""
import asyncio
import logging
from collections.abc import Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncIterator, Protocol

import httpx
from xrpl import XRPLException
from xrpl.asyncio.account import get_next_valid_seq_number
from xrpl.asyncio.clients import AsyncJsonRpcClient, AsyncWebsocketClient
from xrpl.asyncio.ledger import get_latest_validated_ledger_sequence
from xrpl.models.requests import AccountInfo, AccountTx, ServerInfo as ServerInfoRequest, SubmitOnly
from xrpl.models.transactions import Payment

import xrpsync.constants as C
from xrpsync.config import get_default_endpoint_config
from xrpsync.errors import AccountNotFoundError, NetworkError, RemoteRejectionError
from xrpsync.models import AccountData, LedgerTransaction, PreparedTransaction, ServerInfo, SubmitResult

log = logging.getLogger("xrpsync.network")


@dataclass(slots=True, frozen=True)
class PaymentSpec:
    source_address: str
    amount: Decimal  # drops
    destination_address: str
    destination_tag: int | None = None


@dataclass(slots=True, frozen=True)
class PaymentInstructions:
    fee: Decimal  # drops
    max_ledger_version_offset: int = C.MAX_LEDGER_VERSION_OFFSET


class NetworkAPI(Protocol):
    async def connect(self) -> None: ...
    async def disconnect(self) -> None: ...
    async def get_server_info(self) -> ServerInfo: ...
    async def get_account_info(self, address: str) -> AccountData: ...
    async def get_transactions(
        self,
        address: str,
        *,
        min_ledger_version: int,
        max_ledger_version: int,
        types: Sequence[str] = (C.TxType.PAYMENT,),
    ) -> list[LedgerTransaction]: ...
    async def prepare_payment(
        self, address: str, payment: PaymentSpec, instructions: PaymentInstructions
    ) -> PreparedTransaction: ...
    async def submit(self, signed_blob_hex: str) -> SubmitResult: ...


ApiFactory = Callable[[str | None], NetworkAPI]


class RippledAPI:
    """NetworkAPI backed by a websocket (ws/wss) or JSON-RPC (http/https) client."""

    def __init__(self, endpoint: str, *, timeout: float = C.RPC_TIMEOUT) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        if endpoint.startswith(("http://", "https://")):
            self._client = AsyncJsonRpcClient(endpoint)
            self._websocket = False
        else:
            self._client = AsyncWebsocketClient(endpoint)
            self._websocket = True

    async def connect(self) -> None:
        if self._websocket and not self._client.is_open():
            log.debug("connect %s", self.endpoint)
            await self._call(self._client.open(), "connect")

    async def disconnect(self) -> None:
        if self._websocket and self._client.is_open():
            log.debug("disconnect %s", self.endpoint)
            await self._client.close()

    async def _call(self, aw, what: str):
        try:
            return await asyncio.wait_for(aw, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"{what} timed out after {self.timeout}s", context={"endpoint": self.endpoint}) from e
        except (XRPLException, OSError) as e:
            raise NetworkError(f"{what} failed: {e}", context={"endpoint": self.endpoint}) from e

    async def _request(self, req) -> dict:
        resp = await self._call(self._client.request(req), req.method)
        if resp.is_successful():
            return resp.result
        err = resp.result.get("error")
        if err == C.ACCOUNT_NOT_FOUND:
            raise AccountNotFoundError(getattr(req, "account", ""))
        # Surface rippled's own wording when it gives one
        raise RemoteRejectionError(resp.result.get("error_message") or err or "unknown error", code=err)

    async def get_server_info(self) -> ServerInfo:
        return ServerInfo.from_server_info_result(await self._request(ServerInfoRequest()))

    async def get_account_info(self, address: str) -> AccountData:
        result = await self._request(AccountInfo(account=address, ledger_index="validated"))
        return AccountData.from_account_info_result(result)

    async def get_transactions(
        self,
        address: str,
        *,
        min_ledger_version: int,
        max_ledger_version: int,
        types: Sequence[str] = (C.TxType.PAYMENT,),
    ) -> list[LedgerTransaction]:
        """All transactions of ``types`` touching ``address`` in the ledger range, newest first."""
        out: list[LedgerTransaction] = []
        marker = None
        pages = 0
        while True:
            result = await self._request(
                AccountTx(
                    account=address,
                    ledger_index_min=min_ledger_version,
                    ledger_index_max=max_ledger_version,
                    marker=marker,
                )
            )
            pages += 1
            for entry in result.get("transactions", []):
                tx = LedgerTransaction.from_account_tx_entry(entry)
                if tx is not None and tx.transaction_type in types:
                    out.append(tx)
            marker = result.get("marker")
            if marker is None:
                break
        log.debug("account_tx %s [%s, %s]: %d txns in %d pages",
                  address, min_ledger_version, max_ledger_version, len(out), pages)
        return out

    async def prepare_payment(
        self, address: str, payment: PaymentSpec, instructions: PaymentInstructions
    ) -> PreparedTransaction:
        sequence = await self._call(get_next_valid_seq_number(address, self._client), "account_info")
        validated = await self._call(get_latest_validated_ledger_sequence(self._client), "ledger")
        max_ledger_version = validated + instructions.max_ledger_version_offset
        txn = Payment(
            account=address,
            destination=payment.destination_address,
            amount=str(int(payment.amount)),
            destination_tag=payment.destination_tag,
            fee=str(int(instructions.fee)),
            sequence=sequence,
            last_ledger_sequence=max_ledger_version,
        )
        tx = txn.to_xrpl()
        if tx.get("Flags") == 0:
            del tx["Flags"]
        log.debug("prepared payment %s -> %s seq=%s lls=%s", address, payment.destination_address,
                  sequence, max_ledger_version)
        return PreparedTransaction(tx_json=tx, max_ledger_version=max_ledger_version)

    async def submit(self, signed_blob_hex: str) -> SubmitResult:
        return SubmitResult.from_submit_result(await self._request(SubmitOnly(tx_blob=signed_blob_hex)))


def api_for_endpoint_config(endpoint_config: str | None = None) -> RippledAPI:
    return RippledAPI(endpoint_config or get_default_endpoint_config())


@asynccontextmanager
async def connected(api: NetworkAPI) -> AsyncIterator[NetworkAPI]:
    """Hold a network connection for the duration of the block."""
    try:
        await api.connect()
        yield api
    finally:
        try:
            await api.disconnect()
        except NetworkError:
            log.warning("disconnect failed", exc_info=True)


async def validate_endpoint_config(endpoint_config: str, api_factory: ApiFactory = api_for_endpoint_config) -> None:
    """Raise NetworkError unless the endpoint answers server_info."""
    async with connected(api_factory(endpoint_config)) as api:
        await api.get_server_info()


async def probe_endpoint(url: str, *, timeout: float = 3.0) -> dict:
    """POST server_info to an HTTP JSON-RPC endpoint and return the result."""
    payload = {"method": "server_info", "params": [{}]}
    try:
        async with httpx.AsyncClient(timeout=timeout) as http:
            r = await http.post(url, json=payload)
            r.raise_for_status()
            return r.json()["result"]
    except httpx.HTTPError as e:
        raise NetworkError(f"probe {url} failed: {e.__class__.__name__}") from e
