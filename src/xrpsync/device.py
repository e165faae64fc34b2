"""Signing device interface and a software implementation backed by xrpl-py wallets."""

import asyncio
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from xrpl import CryptoAlgorithm
from xrpl.core.binarycodec import encode, encode_for_signing
from xrpl.core.keypairs import sign
from xrpl.wallet import Wallet

from xrpsync.errors import DeviceCommunicationError
from xrpsync.models import Currency

log = logging.getLogger("xrpsync.device")


class Transport(Protocol):
    async def close(self) -> None: ...


class Device(Protocol):
    async def open(self, device_id: str) -> Transport: ...
    async def get_address(self, transport: Transport, currency: Currency, path: str) -> str: ...
    async def sign_transaction(
        self, currency: Currency, transport: Transport, path: str, tx_json: dict[str, Any]
    ) -> str: ...


async def _device_call(aw, what: str):
    try:
        return await aw
    except DeviceCommunicationError:
        raise
    except Exception as e:
        raise DeviceCommunicationError(f"{what} failed: {e}") from e


@asynccontextmanager
async def open_transport(device: Device, device_id: str) -> AsyncIterator[Transport]:
    """Open the device for one flow; the transport is closed on every exit path."""
    transport = await _device_call(device.open(device_id), "open device")
    log.debug("device %s opened", device_id)
    try:
        yield transport
    finally:
        try:
            await transport.close()
        except Exception:
            log.warning("closing device %s failed", device_id, exc_info=True)
        log.debug("device %s closed", device_id)


async def get_address(device: Device, transport: Transport, currency: Currency, path: str) -> str:
    return await _device_call(device.get_address(transport, currency, path), f"get address {path}")


async def sign_transaction(
    device: Device, transport: Transport, currency: Currency, path: str, tx_json: dict[str, Any]
) -> str:
    return await _device_call(device.sign_transaction(currency, transport, path, tx_json), f"sign at {path}")


class SoftwareTransport:
    def __init__(self, device: "SoftwareDevice") -> None:
        self._device = device
        self.closed = False

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._device._lock.release()


class SoftwareDevice:
    """In-process signer: one xrpl-py Wallet per derivation path.

    Only one transport can be open at a time; a second ``open()`` waits until
    the first flow closes its transport.
    """

    def __init__(self, wallets: Mapping[str, Wallet], *, device_id: str = "software") -> None:
        self.device_id = device_id
        self._wallets = dict(wallets)
        self._lock = asyncio.Lock()

    @classmethod
    def from_seeds(
        cls,
        seeds: Mapping[str, str],
        *,
        algorithm: CryptoAlgorithm = CryptoAlgorithm.SECP256K1,
        device_id: str = "software",
    ) -> "SoftwareDevice":
        wallets = {path: Wallet.from_seed(seed, algorithm=algorithm) for path, seed in seeds.items()}
        return cls(wallets, device_id=device_id)

    async def open(self, device_id: str) -> SoftwareTransport:
        if device_id != self.device_id:
            raise DeviceCommunicationError(f"no device {device_id!r}")
        await self._lock.acquire()
        return SoftwareTransport(self)

    def _wallet(self, transport: SoftwareTransport, path: str) -> Wallet:
        if transport.closed:
            raise DeviceCommunicationError("transport is closed")
        try:
            return self._wallets[path]
        except KeyError:
            raise DeviceCommunicationError(f"no key at path {path}") from None

    async def get_address(self, transport: SoftwareTransport, currency: Currency, path: str) -> str:
        return self._wallet(transport, path).classic_address

    async def sign_transaction(
        self, currency: Currency, transport: SoftwareTransport, path: str, tx_json: dict[str, Any]
    ) -> str:
        wallet = self._wallet(transport, path)
        tx = dict(tx_json)
        if tx.get("Account") != wallet.classic_address:
            raise DeviceCommunicationError(f"key at {path} cannot sign for {tx.get('Account')}")
        tx["SigningPubKey"] = wallet.public_key
        signing_blob = encode_for_signing(tx)
        to_sign = signing_blob if isinstance(signing_blob, str) else signing_blob.hex()
        tx["TxnSignature"] = sign(to_sign, wallet.private_key)
        return encode(tx)
