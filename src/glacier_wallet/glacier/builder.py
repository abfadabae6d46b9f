"""TransactionBuilder — the new-lock and unlock (sweep) drafts.

Both drafts pay a flat fee. A draft whose inputs cannot cover the fee is
either absent (new lock) or an error (unlock), never a zero or negative
output.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from glacier_wallet.btc.address import address_to_script_pubkey
from glacier_wallet.btc.transaction import LOCKTIME_THRESHOLD, SEQUENCE_LOCKTIME_ENABLED
from glacier_wallet.errors.chain_errors import ChainDataError
from glacier_wallet.errors.definitions import (
    ErrInvalidLockHeight,
    ErrNoSweepAddress,
    ErrNotEnoughFunds,
)
from glacier_wallet.glacier.models import (
    LOCK_BRANCH,
    DraftInput,
    DraftKind,
    DraftOutput,
    SpendTemplate,
    UnsignedDraft,
)
from glacier_wallet.metrics.collector import GlacierMetrics

if TYPE_CHECKING:
    from glacier_wallet.chain.mempool.client import ChainUtxo, MempoolClient
    from glacier_wallet.glacier.account import GlacierAccount
    from glacier_wallet.glacier.codec import LockScriptCodec
    from glacier_wallet.glacier.models import LockStatus, ScanResult

logger = logging.getLogger(__name__)

DEFAULT_FEE_SATS = 1000
DEFAULT_LOCK_OFFSET = 6


class TransactionBuilder:
    """Assembles unsigned drafts from scan and registry results."""

    def __init__(
        self,
        account: GlacierAccount,
        codec: LockScriptCodec,
        chain: MempoolClient,
        *,
        fee_sats: int = DEFAULT_FEE_SATS,
        lock_offset: int = DEFAULT_LOCK_OFFSET,
        metrics: GlacierMetrics | None = None,
    ) -> None:
        self._account = account
        self._codec = codec
        self._chain = chain
        self._fee = fee_sats
        self._offset = lock_offset
        self._metrics = metrics or GlacierMetrics()

    @property
    def fee_sats(self) -> int:
        return self._fee

    # ------------------------------------------------------------------
    # New lock
    # ------------------------------------------------------------------

    def build_new_lock(self, scan: ScanResult, current_height: int) -> UnsignedDraft | None:
        """Lock every gathered receive UTXO until ``current_height + offset``.

        Returns None when nothing was gathered or the total does not exceed
        the fee.

        Raises:
            GlacierError: ``ErrInvalidLockHeight`` if the target height would
                be read as a timestamp.
        """
        lock_height = current_height + self._offset
        if not 0 <= lock_height < LOCKTIME_THRESHOLD:
            raise ErrInvalidLockHeight

        inputs = [replace(inp) for inp in scan.funding_inputs]
        total = sum(inp.value for inp in inputs)
        if not inputs or total <= self._fee:
            logger.info(
                "No new lock: %d inputs totalling %d sat (fee %d)", len(inputs), total, self._fee
            )
            return None

        descriptor = self._codec.describe_lock(
            lock_height, self._account.lock_pubkey_hash(lock_height)
        )
        network = self._codec.network
        draft = UnsignedDraft(
            kind=DraftKind.NEW_LOCK,
            inputs=inputs,
            outputs=[
                DraftOutput(
                    value=total - self._fee,
                    script_pubkey=address_to_script_pubkey(descriptor.lock_address, network),
                    address=descriptor.lock_address,
                ),
                DraftOutput(value=0, script_pubkey=self._codec.build_lock_marker(lock_height)),
            ],
            lock_height=lock_height,
            lock_address=descriptor.lock_address,
        )
        self._metrics.draft_built(DraftKind.NEW_LOCK)
        return draft

    # ------------------------------------------------------------------
    # Unlock
    # ------------------------------------------------------------------

    async def build_unlock(
        self, locks: list[LockStatus], scan: ScanResult, current_height: int
    ) -> UnsignedDraft | None:
        """Sweep every matured, funded lock into the first unused address.

        The draft's locktime is the highest lock height among its inputs and
        every input signals locktime enforcement.

        Returns None when no lock is both matured and funded.

        Raises:
            GlacierError: ``ErrNoSweepAddress`` when the scan found no unused
                address, ``ErrNotEnoughFunds`` when the swept total does not
                exceed the fee.
        """
        matured = [
            lock for lock in locks if lock.lock_height <= current_height and lock.balance > 0
        ]
        if not matured:
            return None

        sweep = scan.first_unused
        if sweep is None:
            raise ErrNoSweepAddress

        inputs: list[DraftInput] = []
        for lock in matured:
            inputs.extend(await self._lock_inputs(lock))
        if not inputs:
            logger.warning("Matured locks found but none of their outputs could be fetched")
            return None

        total = sum(inp.value for inp in inputs)
        if total <= self._fee:
            raise ErrNotEnoughFunds

        draft = UnsignedDraft(
            kind=DraftKind.UNLOCK,
            inputs=inputs,
            outputs=[
                DraftOutput(
                    value=total - self._fee,
                    script_pubkey=address_to_script_pubkey(sweep.address, self._codec.network),
                    address=sweep.address,
                )
            ],
            locktime=max(inp.lock_height or 0 for inp in inputs),
        )
        self._metrics.draft_built(DraftKind.UNLOCK)
        return draft

    async def _lock_inputs(self, lock: LockStatus) -> list[DraftInput]:
        descriptor = lock.descriptor
        try:
            utxos = await self._chain.get_address_utxos(descriptor.lock_address)
        except ChainDataError as exc:
            logger.warning(
                "Skipping lock %s at height %d: %s",
                descriptor.lock_address,
                descriptor.lock_height,
                exc,
            )
            return []

        prev_hexes = await asyncio.gather(*(self._prev_tx_hex(utxo) for utxo in utxos))
        return [
            DraftInput(
                txid=utxo.txid,
                vout=utxo.vout,
                value=utxo.value,
                template=SpendTemplate.CLTV_P2SH,
                branch=LOCK_BRANCH,
                index=descriptor.lock_height,
                script_pubkey=address_to_script_pubkey(
                    descriptor.lock_address, self._codec.network
                ),
                sequence=SEQUENCE_LOCKTIME_ENABLED,
                redeem_script=descriptor.redeem_script,
                prev_tx_hex=prev_hex,
                lock_height=descriptor.lock_height,
            )
            for utxo, prev_hex in zip(utxos, prev_hexes, strict=True)
            if prev_hex is not None
        ]

    async def _prev_tx_hex(self, utxo: ChainUtxo) -> str | None:
        try:
            return await self._chain.get_raw_transaction_hex(utxo.txid)
        except ChainDataError as exc:
            logger.warning("Skipping lock output %s:%d: %s", utxo.txid, utxo.vout, exc)
            return None
