"""One object wiring caches, network factory and device for a process."""

import asyncio
import logging
from decimal import Decimal
from typing import AsyncIterator

import xrpsync.constants as C
from xrpsync import transaction as tx
from xrpsync.caches import RecipientCache, ServerInfoCache
from xrpsync.config import get_default_endpoint_config
from xrpsync.device import Device
from xrpsync.discovery import scan_accounts
from xrpsync.events import BroadcastEvent, SyncEvent, add_pending
from xrpsync.models import RIPPLE, Account, Currency, NetworkInfo, Operation, ServerInfo, Transaction
from xrpsync.network import ApiFactory, RippledAPI, api_for_endpoint_config, validate_endpoint_config
from xrpsync.sync import sync_account

log = logging.getLogger("xrpsync.bridge")


class LedgerBridge:
    def __init__(
        self,
        *,
        device: Device | None = None,
        api_factory: ApiFactory = api_for_endpoint_config,
        server_info_cache: ServerInfoCache | None = None,
        recipient_cache: RecipientCache | None = None,
        currency: Currency = RIPPLE,
        max_ledger_version_offset: int = C.MAX_LEDGER_VERSION_OFFSET,
    ) -> None:
        self.device = device
        self.api_factory = api_factory
        self.server_info_cache = server_info_cache or ServerInfoCache(api_factory)
        self.recipient_cache = recipient_cache or RecipientCache(api_factory)
        self.currency = currency
        self.max_ledger_version_offset = max_ledger_version_offset

    @classmethod
    def from_config(cls, config: dict, *, device: Device | None = None) -> "LedgerBridge":
        timeout = config["network"]["rpc_timeout"]
        default = config["network"]["endpoint"]

        def api_factory(endpoint: str | None) -> RippledAPI:
            return RippledAPI(endpoint or default, timeout=timeout)

        return cls(
            device=device,
            api_factory=api_factory,
            server_info_cache=ServerInfoCache(api_factory, ttl=config["cache"]["server_info_ttl"]),
            recipient_cache=RecipientCache(api_factory),
            max_ledger_version_offset=config["transaction"]["max_ledger_version_offset"],
        )

    def _require_device(self) -> Device:
        if self.device is None:
            raise RuntimeError("No signing device configured")
        return self.device

    # Endpoint

    def get_default_endpoint_config(self) -> str:
        return get_default_endpoint_config()

    async def validate_endpoint_config(self, endpoint_config: str) -> None:
        await validate_endpoint_config(endpoint_config, self.api_factory)

    async def get_server_info(self, endpoint_config: str | None = None) -> ServerInfo:
        return await self.server_info_cache.get(endpoint_config)

    async def is_recipient_new(self, endpoint_config: str | None, address: str) -> bool:
        return await self.recipient_cache.is_recipient_new(endpoint_config, address)

    # Accounts

    def scan_accounts_on_device(
        self, device_id: str, *, endpoint_config: str | None = None, stop: asyncio.Event | None = None
    ) -> AsyncIterator[Account]:
        return scan_accounts(
            self.currency,
            device_id,
            device=self._require_device(),
            server_info_cache=self.server_info_cache,
            api_factory=self.api_factory,
            endpoint_config=endpoint_config,
            stop=stop,
        )

    def start_sync(self, account: Account, *, stop: asyncio.Event | None = None) -> AsyncIterator[SyncEvent]:
        return sync_account(
            account, server_info_cache=self.server_info_cache, api_factory=self.api_factory, stop=stop
        )

    def pull_more_operations(self, account: Account) -> Account:
        # Older history beyond the server's complete ledgers is not paged
        return account

    def add_pending_operation(self, account: Account, operation: Operation) -> Account:
        return add_pending(account, operation)

    # Transactions

    def create_transaction(self) -> Transaction:
        return tx.create_transaction()

    async def fetch_transaction_network_info(self, account: Account) -> NetworkInfo:
        return await tx.fetch_transaction_network_info(account, api_factory=self.api_factory)

    async def prepare_transaction(self, account: Account, t: Transaction) -> Transaction:
        return await tx.prepare_transaction(account, t, api_factory=self.api_factory)

    async def check_valid_transaction(self, account: Account, t: Transaction) -> Transaction:
        return await tx.validate_transaction(
            account,
            t,
            server_info_cache=self.server_info_cache,
            recipient_cache=self.recipient_cache,
            currency=self.currency,
        )

    def get_total_spent(self, account: Account, t: Transaction) -> Decimal:
        return tx.get_total_spent(account, t)

    def get_max_amount(self, account: Account, t: Transaction) -> Decimal:
        return tx.get_max_amount(account, t)

    def sign_and_broadcast(
        self, account: Account, t: Transaction, device_id: str, *, stop: asyncio.Event | None = None
    ) -> AsyncIterator[BroadcastEvent]:
        return tx.sign_and_broadcast(
            account,
            t,
            device_id,
            device=self._require_device(),
            server_info_cache=self.server_info_cache,
            recipient_cache=self.recipient_cache,
            api_factory=self.api_factory,
            currency=self.currency,
            max_ledger_version_offset=self.max_ledger_version_offset,
            stop=stop,
        )
