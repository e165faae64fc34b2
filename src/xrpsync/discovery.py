"""Account discovery across the derivation paths of a signing device."""

import asyncio
import logging
from decimal import Decimal
from typing import AsyncIterator

from xrpsync.caches import ServerInfoCache
from xrpsync.derivation import (
    get_derivation_modes_for_currency,
    get_derivation_scheme,
    max_accounts_for_mode,
    run_derivation_scheme,
)
from xrpsync.device import Device, get_address, open_transport
from xrpsync.errors import AccountNotFoundError
from xrpsync.models import (
    Account,
    Currency,
    account_placeholder_name,
    make_account_id,
    new_account_placeholder_name,
)
from xrpsync.network import ApiFactory, api_for_endpoint_config, connected
from xrpsync.operations import merge_operations, tx_to_operation

log = logging.getLogger("xrpsync.discovery")


async def scan_accounts(
    currency: Currency,
    device_id: str,
    *,
    device: Device,
    server_info_cache: ServerInfoCache,
    api_factory: ApiFactory = api_for_endpoint_config,
    endpoint_config: str | None = None,
    stop: asyncio.Event | None = None,
) -> AsyncIterator[Account]:
    """Yield every account reachable from the device seed.

    For each derivation mode, indices are walked from 0 until one has no
    on-chain account. The default mode ("") then yields a zero-balance
    placeholder so the user can receive on it. ``stop`` is checked before each
    device or network round-trip.
    """
    stopped = stop.is_set if stop is not None else (lambda: False)
    found = 0

    if stopped():
        return
    async with (
        open_transport(device, device_id) as transport,
        connected(api_factory(endpoint_config)) as api,
    ):
        server_info = await server_info_cache.get(endpoint_config)
        min_ledger = server_info.min_ledger_version
        max_ledger = server_info.max_ledger_version
        if stopped():
            return

        for mode in get_derivation_modes_for_currency(currency):
            scheme = get_derivation_scheme(derivation_mode=mode, currency=currency)
            for index in range(max_accounts_for_mode(mode)):
                if stopped():
                    return
                path = run_derivation_scheme(scheme, currency, account=index)
                address = await get_address(device, transport, currency, path)
                if stopped():
                    return

                account_id = make_account_id(currency, address, mode)
                log.debug("scan %s mode=%r index=%d -> %s", path, mode, index, address)
                try:
                    info = await api.get_account_info(address)
                except AccountNotFoundError:
                    if mode == "":
                        yield Account(
                            id=account_id,
                            currency_id=currency.id,
                            derivation_mode=mode,
                            index=index,
                            seed_identifier=address,
                            name=new_account_placeholder_name(currency, index, mode),
                            fresh_address=address,
                            fresh_address_path=path,
                            balance=Decimal(0),
                            block_height=max_ledger,
                            endpoint_config=endpoint_config,
                        )
                    # an empty index ends this mode
                    break
                if stopped():
                    return

                transactions = await api.get_transactions(
                    address, min_ledger_version=min_ledger, max_ledger_version=max_ledger
                )
                if stopped():
                    return

                operations = merge_operations((), (tx_to_operation(account_id, address, tx) for tx in transactions))
                found += 1
                log.info("found %s at %s with %d operations", address, path, len(operations))
                yield Account(
                    id=account_id,
                    currency_id=currency.id,
                    derivation_mode=mode,
                    index=index,
                    seed_identifier=address,
                    name=account_placeholder_name(currency, index, mode),
                    fresh_address=address,
                    fresh_address_path=path,
                    balance=info.balance,
                    block_height=max_ledger,
                    operations=operations,
                    endpoint_config=endpoint_config,
                )

    log.info("scan complete: %d existing accounts", found)
