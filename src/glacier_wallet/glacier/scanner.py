"""ChainScanner — walks the receive branch and gathers funds and lock candidates."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from glacier_wallet.errors.chain_errors import ChainDataError
from glacier_wallet.glacier.models import (
    RECEIVE_BRANCH,
    DraftInput,
    LockCandidate,
    ScanResult,
    SpendTemplate,
)
from glacier_wallet.metrics.collector import GlacierMetrics

if TYPE_CHECKING:
    from glacier_wallet.chain.mempool.client import (
        AddressInfo,
        ChainTransaction,
        ChainUtxo,
        MempoolClient,
    )
    from glacier_wallet.glacier.account import GlacierAccount
    from glacier_wallet.glacier.codec import LockScriptCodec
    from glacier_wallet.glacier.models import DerivedAddress

logger = logging.getLogger(__name__)


class ChainScanner:
    """Visits receive addresses ``0..count-1`` until the first unused one.

    Usage checks run strictly in index order. For each used address the
    UTXO list and the transaction history are fetched concurrently.
    """

    def __init__(
        self,
        account: GlacierAccount,
        codec: LockScriptCodec,
        chain: MempoolClient,
        metrics: GlacierMetrics | None = None,
    ) -> None:
        self._account = account
        self._codec = codec
        self._chain = chain
        self._metrics = metrics or GlacierMetrics()

    async def scan(self, count: int) -> ScanResult:
        """Scan up to *count* receive addresses.

        The first address without history is included in the result and
        ends the scan. An address whose lookups fail is logged and skipped.
        """
        result = ScanResult()
        with self._metrics.track_scan():
            for index in range(count):
                derived = self._account.receive_address(index)
                try:
                    info = await self._chain.get_address_info(derived.address)
                    derived.used = info.used
                    derived.balance = info.balance
                    if not info.used:
                        result.addresses.append(derived)
                        self._metrics.address_scanned("unused")
                        break
                    utxos, transactions = await asyncio.gather(
                        self._fetch_utxos(derived, info),
                        self._chain.get_address_transactions(derived.address),
                    )
                except ChainDataError as exc:
                    logger.warning(
                        "Skipping address %s (%s): %s", derived.path, derived.address, exc
                    )
                    self._metrics.address_scanned("error")
                    continue

                self._metrics.address_scanned("used")
                result.addresses.append(derived)
                script_pubkey = self._account.receive_script(index)
                result.funding_inputs.extend(
                    DraftInput(
                        txid=utxo.txid,
                        vout=utxo.vout,
                        value=utxo.value,
                        template=SpendTemplate.P2WPKH,
                        branch=RECEIVE_BRANCH,
                        index=index,
                        script_pubkey=script_pubkey,
                    )
                    for utxo in utxos
                )
                for tx in transactions:
                    self._collect_candidate(result, tx)

        logger.debug(
            "Scanned %d addresses: %d funding inputs, %d lock candidates",
            len(result.addresses),
            len(result.funding_inputs),
            len(result.candidates),
        )
        return result

    async def _fetch_utxos(self, derived: DerivedAddress, info: AddressInfo) -> list[ChainUtxo]:
        if info.balance <= 0:
            return []
        return await self._chain.get_address_utxos(derived.address)

    def _collect_candidate(self, result: ScanResult, tx: ChainTransaction) -> None:
        if tx.txid in result.candidates:
            return
        markers = [out for out in tx.outputs if self._codec.is_lock_marker(out.script_pubkey)]
        if not markers:
            return
        result.candidates[tx.txid] = LockCandidate(
            transaction=tx,
            marker_height=self._codec.parse_lock_marker(markers[-1].script_pubkey),
        )
