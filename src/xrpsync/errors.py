"""Exceptions raised by the sync engine, discovery and transaction lifecycle.

Business-rule failures (``TransactionValidationError`` subclasses) carry enough
structured ``context`` for a caller to render an actionable message. Transport
failures are split into device and network errors. ``AccountNotFoundError`` is
the one network error callers treat as a normal outcome (the account is absent).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping


class XRPSyncError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context: dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.__class__.__name__, "message": self.message, **self.context}


class InvalidInputError(XRPSyncError, ValueError):
    """A mutator received a value of the wrong type or range."""


class InvalidBalanceError(XRPSyncError):
    """A balance fetched from the network is not a finite, non-negative decimal."""


# Business rules


class TransactionValidationError(XRPSyncError):
    pass


class FeeNotLoadedError(TransactionValidationError):
    def __init__(self) -> None:
        super().__init__("fee not loaded")


class InvalidAddressError(TransactionValidationError):
    def __init__(self, address: str, currency_name: str = "XRP") -> None:
        super().__init__(
            f"{address!r} is not a valid {currency_name} address",
            context={"address": address, "currency_name": currency_name},
        )
        self.address = address


class DestinationNotCreatedError(TransactionValidationError):
    """The recipient is unfunded and the amount would not cover the account reserve."""

    def __init__(self, minimal_amount: Decimal, formatted: str) -> None:
        super().__init__(
            f"destination would not be created, send at least {formatted}",
            context={"minimal_amount": str(minimal_amount), "minimal_amount_formatted": formatted},
        )
        self.minimal_amount = minimal_amount


class NotEnoughBalanceError(TransactionValidationError):
    def __init__(self) -> None:
        super().__init__("insufficient balance")


# Transport


class DeviceCommunicationError(XRPSyncError):
    pass


class NetworkError(XRPSyncError):
    pass


class AccountNotFoundError(NetworkError):
    def __init__(self, address: str) -> None:
        super().__init__("actNotFound", context={"address": address})
        self.address = address


class RemoteRejectionError(NetworkError):
    """rippled answered with an error payload. ``message`` is the remote text."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message, context={"code": code} if code else None)
        self.code = code


class SubmissionError(NetworkError):
    def __init__(self, result_code: str, result_message: str | None) -> None:
        super().__init__(
            result_message or result_code,
            context={"result_code": result_code, "result_message": result_message},
        )
        self.result_code = result_code
        self.result_message = result_message
