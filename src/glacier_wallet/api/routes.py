"""Wallet endpoints.

``GET /addresses`` runs the whole lock pipeline: it scans the receive
branch, reports validated locks and returns the signed new-lock and unlock
transactions, optionally broadcasting them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, JSONResponse

from glacier_wallet.api.dependencies import get_config, get_service
from glacier_wallet.api.render import render_pre
from glacier_wallet.api.schemas import (
    AddressesResponse,
    AddressResponse,
    DraftInputResponse,
    DraftOutputResponse,
    DraftResponse,
    ErrorResponse,
    LockResponse,
)
from glacier_wallet.config.settings import AppConfig  # noqa: TC001
from glacier_wallet.errors.definitions import ErrInvalidScanCount
from glacier_wallet.glacier.service import GlacierService  # noqa: TC001

if TYPE_CHECKING:
    from glacier_wallet.glacier.models import GlacierReport, SignedTransaction, UnsignedDraft

router = APIRouter(tags=["glacier"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _draft_resp(draft: UnsignedDraft, signed: SignedTransaction | None) -> DraftResponse:
    return DraftResponse(
        kind=draft.kind,
        lock_height=draft.lock_height,
        lock_address=draft.lock_address,
        locktime=draft.locktime,
        fee=draft.fee,
        inputs=[
            DraftInputResponse(
                txid=inp.txid,
                vout=inp.vout,
                value=inp.value,
                template=inp.template,
                key_path=inp.key_path,
                sequence=inp.sequence,
            )
            for inp in draft.inputs
        ],
        outputs=[
            DraftOutputResponse(
                value=out.value, address=out.address, script_pubkey=out.script_pubkey.hex()
            )
            for out in draft.outputs
        ],
        unsigned_tx=draft.unsigned_hex,
        signed_tx=signed.hex if signed else None,
        txid=signed.txid if signed else None,
    )


def report_response(report: GlacierReport) -> AddressesResponse:
    """Map a :class:`GlacierReport` onto the response schema."""
    return AddressesResponse(
        network=report.network,
        xpub=report.xpub,
        current_height=report.current_height,
        addresses=[
            AddressResponse(
                address=a.address, path=a.path, index=a.index, used=a.used, balance=a.balance
            )
            for a in report.addresses
        ],
        glacier_locks=[
            LockResponse(
                address=lock.address,
                lock_height=lock.lock_height,
                balance=lock.balance,
                spendable=lock.spendable,
                redeem_script=lock.descriptor.redeem_script.hex(),
            )
            for lock in report.locks
        ],
        new_lock=_draft_resp(report.new_lock, report.new_lock_tx) if report.new_lock else None,
        unlock=_draft_resp(report.unlock, report.unlock_tx) if report.unlock else None,
        broadcasts=dict(report.broadcasts),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse, "description": "Scan count out of range"},
    422: {
        "model": ErrorResponse,
        "description": "Malformed query, or a transaction rejected on broadcast",
    },
    502: {"model": ErrorResponse, "description": "Chain data unavailable"},
    503: {"model": ErrorResponse, "description": "Wallet mnemonic missing or invalid"},
}


@router.get(
    "/addresses",
    response_model=None,
    responses={200: {"model": AddressesResponse}, **_ERROR_RESPONSES},
)
async def get_addresses(
    service: Annotated[GlacierService, Depends(get_service)],
    config: Annotated[AppConfig, Depends(get_config)],
    count: int | None = None,
    output: Annotated[Literal["json", "html"], Query(alias="format")] = "json",
    broadcast: bool = False,
) -> JSONResponse | HTMLResponse:
    """Scan, report locks and return the signed drafts."""
    if count is None:
        count = config.lock.default_scan_count
    if not 1 <= count <= config.lock.max_scan_count:
        raise ErrInvalidScanCount

    report = await service.run(count, broadcast=broadcast)
    payload = report_response(report).model_dump(mode="json")
    if output == "html":
        return HTMLResponse(render_pre(payload))
    return JSONResponse(payload)
