"""BIP44 derivation modes for XRP accounts."""

from dataclasses import dataclass

import xrpsync.constants as C
from xrpsync.models import Currency


@dataclass(slots=True, frozen=True)
class DerivationMode:
    scheme: str | None = None  # None uses the default scheme
    iterable: bool = True


DEFAULT_SCHEME = "44'/<coin_type>'/<account>'/0/<address>"

# Mode "" is the default one every currency supports.
MODES: dict[str, DerivationMode] = {
    "": DerivationMode(),
    "sep5": DerivationMode(scheme="44'/<coin_type>'/<account>'"),
}


def get_derivation_modes_for_currency(currency: Currency) -> list[str]:
    unknown = [m for m in currency.derivation_modes if m not in MODES]
    if unknown:
        raise ValueError(f"unknown derivation modes for {currency.id}: {unknown}")
    return list(currency.derivation_modes)


def get_derivation_scheme(*, derivation_mode: str, currency: Currency) -> str:
    return MODES[derivation_mode].scheme or DEFAULT_SCHEME


def run_derivation_scheme(scheme: str, currency: Currency, *, account: int = 0, address: int = 0) -> str:
    return (
        scheme.replace("<coin_type>", str(currency.coin_type))
        .replace("<account>", str(account))
        .replace("<address>", str(address))
    )


def is_iterable_derivation_mode(derivation_mode: str) -> bool:
    return MODES[derivation_mode].iterable


def max_accounts_for_mode(derivation_mode: str) -> int:
    return C.MAX_ITERABLE_ACCOUNTS if is_iterable_derivation_mode(derivation_mode) else 1
