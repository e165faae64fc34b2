import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Request
from pydantic import AwareDatetime, BaseModel, Field

import xrpsync.constants as C
from xrpsync.bridge import LedgerBridge
from xrpsync.config import cfg
from xrpsync.errors import InvalidBalanceError, NetworkError, TransactionValidationError
from xrpsync.events import apply_sync_event
from xrpsync.logging_config import setup_logging
from xrpsync.models import Account, Operation, Transaction, now
from xrpsync.network import probe_endpoint

log = logging.getLogger("xrpsync.app")


class OperationModel(BaseModel):
    id: str
    hash: str
    account_id: str
    type: C.OperationType
    value: Decimal
    fee: Decimal
    senders: list[str]
    recipients: list[str]
    date: AwareDatetime
    transaction_sequence_number: int | None = None
    block_height: int | None = None

    def to_operation(self) -> Operation:
        data = self.model_dump()
        data["senders"] = tuple(self.senders)
        data["recipients"] = tuple(self.recipients)
        return Operation(**data)

    @classmethod
    def from_operation(cls, op: Operation) -> "OperationModel":
        return cls(**{k: v for k, v in asdict(op).items() if k != "block_hash"})


class AccountModel(BaseModel):
    id: str
    fresh_address: str
    fresh_address_path: str
    balance: Decimal = Field(ge=0)
    block_height: int = 0
    currency_id: str = "ripple"
    derivation_mode: str = ""
    index: int = 0
    seed_identifier: str = ""
    name: str = ""
    operations: list[OperationModel] = []
    pending_operations: list[OperationModel] = []
    last_sync_date: AwareDatetime | None = None
    endpoint_config: str | None = None

    def to_account(self) -> Account:
        data = self.model_dump(exclude={"operations", "pending_operations", "last_sync_date"})
        return Account(
            **data,
            operations=tuple(op.to_operation() for op in self.operations),
            pending_operations=tuple(op.to_operation() for op in self.pending_operations),
            last_sync_date=self.last_sync_date or now(),
        )

    @classmethod
    def from_account(cls, account: Account) -> "AccountModel":
        return cls(
            id=account.id,
            fresh_address=account.fresh_address,
            fresh_address_path=account.fresh_address_path,
            balance=account.balance,
            block_height=account.block_height,
            currency_id=account.currency_id,
            derivation_mode=account.derivation_mode,
            index=account.index,
            seed_identifier=account.seed_identifier,
            name=account.name,
            operations=[OperationModel.from_operation(op) for op in account.operations],
            pending_operations=[OperationModel.from_operation(op) for op in account.pending_operations],
            last_sync_date=account.last_sync_date,
            endpoint_config=account.endpoint_config,
        )


class TransactionModel(BaseModel):
    amount: int = Field(ge=0)  # drops
    recipient: str = ""
    fee: int | None = Field(default=None, ge=0)
    tag: int | None = Field(default=None, ge=0, lt=2**32)

    def to_transaction(self) -> Transaction:
        return Transaction(
            amount=Decimal(self.amount),
            recipient=self.recipient,
            fee=None if self.fee is None else Decimal(self.fee),
            tag=self.tag,
        )


class ValidateRequest(BaseModel):
    account: AccountModel
    transaction: TransactionModel


def get_bridge(request: Request) -> LedgerBridge:
    return request.app.state.bridge


def create_app(bridge: LedgerBridge | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.bridge is None:
            setup_logging()
            app.state.bridge = LedgerBridge.from_config(cfg)
            endpoint = cfg["network"]["endpoint"]
            log.info("Probing %s", endpoint)
            try:
                if endpoint.startswith(("http://", "https://")):
                    await probe_endpoint(endpoint)
                else:
                    await app.state.bridge.validate_endpoint_config(endpoint)
                log.info("Endpoint OK")
            except NetworkError as e:
                log.warning("Endpoint not reachable yet: %s", e)
        yield

    app = FastAPI(title="xrpsync", lifespan=lifespan)
    app.state.bridge = bridge

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/server_info")
    async def server_info(request: Request, endpoint: str | None = None):
        try:
            info = await get_bridge(request).get_server_info(endpoint)
        except NetworkError as e:
            raise HTTPException(status_code=502, detail=e.to_dict())
        return {k: str(v) if isinstance(v, Decimal) else v for k, v in asdict(info).items()}

    @app.get("/recipients/{address}/new")
    async def recipient_new(request: Request, address: str, endpoint: str | None = None):
        try:
            is_new = await get_bridge(request).is_recipient_new(endpoint, address)
        except NetworkError as e:
            raise HTTPException(status_code=502, detail=e.to_dict())
        return {"address": address, "is_new": is_new}

    @app.post("/accounts/sync")
    async def sync(request: Request, body: AccountModel):
        account = body.to_account()
        kinds = []
        try:
            async for event in get_bridge(request).start_sync(account):
                account = apply_sync_event(account, event)
                kinds.append(event.kind)
        except (NetworkError, InvalidBalanceError) as e:
            raise HTTPException(status_code=502, detail=e.to_dict())
        return {"account": AccountModel.from_account(account), "events": kinds}

    @app.post("/transactions/validate")
    async def validate(request: Request, body: ValidateRequest):
        try:
            t = await get_bridge(request).check_valid_transaction(
                body.account.to_account(), body.transaction.to_transaction()
            )
        except TransactionValidationError as e:
            raise HTTPException(status_code=422, detail=e.to_dict())
        except NetworkError as e:
            raise HTTPException(status_code=502, detail=e.to_dict())
        return {"ok": True, "state": t.state}

    return app


app = create_app()
