"""Incremental synchronization of one account against rippled."""

import asyncio
import logging
from typing import AsyncIterator

from xrpsync.caches import ServerInfoCache
from xrpsync.errors import AccountNotFoundError
from xrpsync.events import BalanceUpdated, OperationsMerged, SyncEvent
from xrpsync.models import Account, now
from xrpsync.network import ApiFactory, api_for_endpoint_config, connected

log = logging.getLogger("xrpsync.sync")


def sync_start_ledger(account: Account, min_ledger_version: int) -> int:
    # An empty history may follow a local clear: pull everything still available
    # instead of trusting the bookmark.
    bookmark = account.block_height if account.operations else 0
    return max(bookmark, min_ledger_version)


async def sync_account(
    account: Account,
    *,
    server_info_cache: ServerInfoCache,
    api_factory: ApiFactory = api_for_endpoint_config,
    stop: asyncio.Event | None = None,
) -> AsyncIterator[SyncEvent]:
    """Yield a BalanceUpdated then an OperationsMerged event for ``account``.

    Yields nothing when the account does not exist on-chain. Setting ``stop``
    ends the stream at the next checkpoint; an in-flight request is never
    interrupted. Events already yielded stay valid.
    """
    stopped = stop.is_set if stop is not None else (lambda: False)
    endpoint = account.endpoint_config
    address = account.fresh_address

    async with connected(api_factory(endpoint)) as api:
        if stopped():
            return
        server_info = await server_info_cache.get(endpoint)
        if stopped():
            return

        try:
            info = await api.get_account_info(address)
        except AccountNotFoundError:
            log.info("%s not found on-chain, nothing to sync", address)
            return
        if stopped():
            return

        log.debug("%s balance=%s", address, info.balance)
        yield BalanceUpdated(balance=info.balance)

        start = sync_start_ledger(account, server_info.min_ledger_version)
        transactions = await api.get_transactions(
            address,
            min_ledger_version=start,
            max_ledger_version=server_info.max_ledger_version,
        )
        if stopped():
            return

        log.info("synced %s: %d txns in ledgers [%s, %s]",
                 address, len(transactions), start, server_info.max_ledger_version)
        yield OperationsMerged(
            transactions=tuple(transactions),
            block_height=server_info.max_ledger_version,
            synced_at=now(),
        )
