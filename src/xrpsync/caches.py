"""Process-wide caches shared by every account on the same endpoint.

Both caches coalesce concurrent lookups of a missing key into one in-flight
task and forget a key as soon as its lookup fails, so the next caller retries.
Create one of each per process and pass them to the bridges.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import xrpsync.constants as C
from xrpsync.errors import AccountNotFoundError
from xrpsync.models import ServerInfo, is_valid_address
from xrpsync.network import ApiFactory, api_for_endpoint_config, connected

log = logging.getLogger("xrpsync.cache")


def _log_failure(what: str, key: str):
    def _done(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            log.debug("%s lookup for %r failed: %s", what, key, task.exception())
    return _done


@dataclass
class _Entry:
    task: asyncio.Future | None = None
    fetched_at: float | None = None


@dataclass
class ServerInfoCache:
    """``server_info`` per endpoint, fresh for ``ttl`` seconds after a success."""

    api_factory: ApiFactory = api_for_endpoint_config
    ttl: float = C.SERVER_INFO_TTL
    clock: Callable[[], float] = time.monotonic
    _entries: dict[str, _Entry] = field(default_factory=dict, init=False, repr=False)

    async def get(self, endpoint_config: str | None = None) -> ServerInfo:
        key = endpoint_config or ""
        entry = self._entries.get(key)
        if entry is None or self._expired(entry):
            entry = _Entry()
            entry.task = asyncio.ensure_future(self._fetch(key, entry))
            entry.task.add_done_callback(_log_failure("server_info", key))
            self._entries[key] = entry
        # shield: one caller giving up must not cancel the fetch the others wait on
        return await asyncio.shield(entry.task)

    def _expired(self, entry: _Entry) -> bool:
        return entry.fetched_at is not None and self.clock() - entry.fetched_at >= self.ttl

    async def _fetch(self, key: str, entry: _Entry) -> ServerInfo:
        log.debug("fetching server_info for %r", key)
        try:
            async with connected(self.api_factory(key or None)) as api:
                info = await api.get_server_info()
        except BaseException:
            if self._entries.get(key) is entry:
                del self._entries[key]
            raise
        entry.fetched_at = self.clock()
        return info

    def invalidate(self, endpoint_config: str | None = None) -> None:
        self._entries.pop(endpoint_config or "", None)

    def clear(self) -> None:
        self._entries.clear()


@dataclass
class RecipientCache:
    """Whether an address is still unfunded on-chain, memoized until evicted."""

    api_factory: ApiFactory = api_for_endpoint_config
    _entries: dict[str, asyncio.Future] = field(default_factory=dict, init=False, repr=False)

    async def is_recipient_new(self, endpoint_config: str | None, address: str) -> bool:
        task = self._entries.get(address)
        if task is None:
            task = asyncio.ensure_future(self._compute(endpoint_config, address))
            task.add_done_callback(_log_failure("recipient", address))
            self._entries[address] = task
        return await asyncio.shield(task)

    async def _compute(self, endpoint_config: str | None, address: str) -> bool:
        # Invalid addresses are reported by validation, not here
        if not is_valid_address(address):
            return False
        me = self._entries.get(address)
        try:
            async with connected(self.api_factory(endpoint_config)) as api:
                await api.get_account_info(address)
            return False
        except AccountNotFoundError:
            return True
        except BaseException:
            if self._entries.get(address) is me:
                del self._entries[address]
            raise

    def evict(self, address: str) -> None:
        if self._entries.pop(address, None) is not None:
            log.debug("evicted recipient %s", address)

    def __contains__(self, address: str) -> bool:
        return address in self._entries

    def clear(self) -> None:
        self._entries.clear()
