"""Response schemas for the HTTP API.

Thin Pydantic models defining the HTTP contract; routes map the domain
dataclasses onto them.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error body ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


class AddressResponse(BaseModel):
    """One visited receive address."""

    address: str
    path: str
    index: int
    used: bool
    balance: int


class LockResponse(BaseModel):
    """A validated lock and its on-chain state."""

    address: str
    lock_height: int
    balance: int
    spendable: bool
    redeem_script: str


class DraftInputResponse(BaseModel):
    txid: str
    vout: int
    value: int
    template: str
    key_path: str
    sequence: int


class DraftOutputResponse(BaseModel):
    value: int
    address: str | None = None
    script_pubkey: str


class DraftResponse(BaseModel):
    """An unsigned draft together with its signed form."""

    kind: str
    lock_height: int | None = None
    lock_address: str | None = None
    locktime: int
    fee: int
    inputs: list[DraftInputResponse] = Field(default_factory=list)
    outputs: list[DraftOutputResponse] = Field(default_factory=list)
    unsigned_tx: str
    signed_tx: str | None = None
    txid: str | None = None


class AddressesResponse(BaseModel):
    """GET /addresses."""

    network: str
    xpub: str
    current_height: int
    addresses: list[AddressResponse]
    glacier_locks: list[LockResponse]
    new_lock: DraftResponse | None = None
    unlock: DraftResponse | None = None
    broadcasts: dict[str, str] = Field(default_factory=dict)
