"""GlacierService — one request through scan, validation, drafting and signing.

Pipeline::

    tip height -> ChainScanner -> LockRegistry -> lock balances
        -> TransactionBuilder -> Signer -> (optional) broadcast

Nothing is broadcast until every draft is fully signed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from glacier_wallet.errors.chain_errors import BroadcastRejectedError, ChainDataError
from glacier_wallet.errors.definitions import ErrInvalidScanCount
from glacier_wallet.glacier.builder import DEFAULT_FEE_SATS, DEFAULT_LOCK_OFFSET, TransactionBuilder
from glacier_wallet.glacier.codec import LockScriptCodec
from glacier_wallet.glacier.models import GlacierReport, LockStatus
from glacier_wallet.glacier.registry import LockRegistry
from glacier_wallet.glacier.scanner import ChainScanner
from glacier_wallet.glacier.signer import Signer
from glacier_wallet.metrics.collector import GlacierMetrics

if TYPE_CHECKING:
    from glacier_wallet.chain.mempool.client import MempoolClient
    from glacier_wallet.config.settings import AppConfig
    from glacier_wallet.glacier.account import GlacierAccount
    from glacier_wallet.glacier.models import LockDescriptor, SignedTransaction

logger = logging.getLogger(__name__)


class GlacierService:
    """Runs the lock pipeline for one account against one chain client.

    Usage::

        service = GlacierService(account, chain)
        report = await service.run(count=10)
    """

    def __init__(
        self,
        account: GlacierAccount,
        chain: MempoolClient,
        *,
        fee_sats: int = DEFAULT_FEE_SATS,
        lock_offset: int = DEFAULT_LOCK_OFFSET,
        metrics: GlacierMetrics | None = None,
    ) -> None:
        self._account = account
        self._chain = chain
        self._metrics = metrics or GlacierMetrics()
        self._codec = LockScriptCodec(account.network)
        self._scanner = ChainScanner(account, self._codec, chain, self._metrics)
        self._registry = LockRegistry(account, self._codec, self._metrics)
        self._builder = TransactionBuilder(
            account,
            self._codec,
            chain,
            fee_sats=fee_sats,
            lock_offset=lock_offset,
            metrics=self._metrics,
        )
        self._signer = Signer(account)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        account: GlacierAccount,
        chain: MempoolClient,
        metrics: GlacierMetrics | None = None,
    ) -> GlacierService:
        """Build a service using the lock policy from *config*."""
        return cls(
            account,
            chain,
            fee_sats=config.lock.fee_sats,
            lock_offset=config.lock.lock_offset,
            metrics=metrics,
        )

    @property
    def account(self) -> GlacierAccount:
        return self._account

    @property
    def codec(self) -> LockScriptCodec:
        return self._codec

    @property
    def metrics(self) -> GlacierMetrics:
        return self._metrics

    async def run(self, count: int, *, broadcast: bool = False) -> GlacierReport:
        """Scan *count* receive addresses and produce signed drafts.

        Raises:
            ChainDataError: If the chain tip cannot be fetched.
            GlacierError: On drafting, signing or finalization failures.
            BroadcastRejectedError: If *broadcast* is set and a transaction
                is refused.
        """
        if count < 1:
            raise ErrInvalidScanCount

        current_height = await self._chain.get_current_height()
        scan = await self._scanner.scan(count)
        descriptors = self._registry.collect(scan.candidates.values())
        locks = await self._lock_statuses(descriptors, current_height)

        new_lock = self._builder.build_new_lock(scan, current_height)
        unlock = await self._builder.build_unlock(locks, scan, current_height)

        new_lock_tx = self._signer.sign(new_lock) if new_lock else None
        unlock_tx = self._signer.sign(unlock) if unlock else None

        report = GlacierReport(
            network=str(self._account.network.name),
            xpub=self._account.xpub,
            current_height=current_height,
            addresses=scan.addresses,
            locks=locks,
            new_lock=new_lock,
            new_lock_tx=new_lock_tx,
            unlock=unlock,
            unlock_tx=unlock_tx,
        )
        if broadcast:
            for signed in (unlock_tx, new_lock_tx):
                if signed is None:
                    continue
                try:
                    report.broadcasts[signed.kind] = await self._broadcast(signed)
                except BroadcastRejectedError as exc:
                    if not report.broadcasts:
                        raise
                    raise self._partial_broadcast_error(exc, report.broadcasts) from exc
        return report

    @staticmethod
    def _partial_broadcast_error(
        exc: BroadcastRejectedError, accepted: dict[str, str]
    ) -> BroadcastRejectedError:
        already = ", ".join(f"{kind}={txid}" for kind, txid in accepted.items())
        logger.warning("Broadcast stopped after accepting %s: %s", already, exc.message)
        msg = f"{exc.message}; already accepted: {already}"
        return BroadcastRejectedError(msg, reason=exc.reason, accepted=accepted)

    async def _lock_statuses(
        self, descriptors: list[LockDescriptor], current_height: int
    ) -> list[LockStatus]:
        statuses: list[LockStatus] = []
        for descriptor in descriptors:
            try:
                info = await self._chain.get_address_info(descriptor.lock_address)
            except ChainDataError as exc:
                logger.warning(
                    "Skipping lock %s at height %d: %s",
                    descriptor.lock_address,
                    descriptor.lock_height,
                    exc,
                )
                continue
            statuses.append(
                LockStatus(
                    descriptor=descriptor,
                    balance=info.balance,
                    spendable=current_height >= descriptor.lock_height,
                )
            )
        return statuses

    async def _broadcast(self, signed: SignedTransaction) -> str:
        try:
            txid = await self._chain.broadcast_transaction(signed.hex)
        except BroadcastRejectedError:
            self._metrics.broadcast(signed.kind, accepted=False)
            raise
        self._metrics.broadcast(signed.kind, accepted=True)
        logger.info("Broadcast %s transaction %s", signed.kind, txid)
        return txid
