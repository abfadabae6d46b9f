"""Tests for the end-to-end lock pipeline."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry

from glacier_wallet.btc.transaction import Transaction
from glacier_wallet.config.settings import AppConfig, LockConfig
from glacier_wallet.errors.chain_errors import BroadcastRejectedError, ChainDataError
from glacier_wallet.errors.glacier_errors import GlacierError
from glacier_wallet.glacier.models import DraftKind
from glacier_wallet.glacier.service import GlacierService
from glacier_wallet.metrics.collector import GlacierMetrics, MetricsCollector


@pytest.fixture
def metrics() -> GlacierMetrics:
    return GlacierMetrics(MetricsCollector(CollectorRegistry()))


@pytest.fixture
def service(account, chain, metrics) -> GlacierService:
    return GlacierService(account, chain, fee_sats=1000, lock_offset=2, metrics=metrics)


class TestRun:
    @pytest.mark.asyncio
    async def test_fresh_wallet(self, service, account, chain) -> None:
        report = await service.run(10)

        assert report.network == "testnet4"
        assert report.xpub == account.xpub
        assert report.current_height == 200
        assert [a.index for a in report.addresses] == [0]
        assert report.locks == []
        assert report.new_lock is None
        assert report.unlock is None
        assert report.broadcasts == {}

    @pytest.mark.asyncio
    async def test_funded_wallet_gets_new_lock(self, service, account, chain) -> None:
        chain.fund(account.receive_address(0).address, 5000)

        report = await service.run(10)

        assert report.new_lock is not None
        assert report.new_lock.lock_height == 202
        assert report.new_lock.outputs[0].value == 4000
        tx = Transaction.from_hex(report.new_lock_tx.hex)
        assert tx.txid() == report.new_lock_tx.txid
        assert len(tx.inputs[0].witness) == 2

    @pytest.mark.asyncio
    async def test_matured_lock_is_swept(self, service, account, codec, chain) -> None:
        chain.add_lock(account, codec, 150, 3000)

        report = await service.run(10)

        assert [(lock.lock_height, lock.balance, lock.spendable) for lock in report.locks] == [
            (150, 3000, True)
        ]
        assert report.unlock is not None
        assert report.unlock.locktime == 150
        assert report.unlock.outputs[0].value == 2000
        assert report.unlock.outputs[0].address == account.receive_address(1).address
        assert report.unlock_tx is not None

    @pytest.mark.asyncio
    async def test_immature_lock_reported_only(self, service, account, codec, chain) -> None:
        chain.add_lock(account, codec, 250, 3000)

        report = await service.run(10)

        assert [(lock.lock_height, lock.spendable) for lock in report.locks] == [(250, False)]
        assert report.unlock is None

    @pytest.mark.asyncio
    async def test_foreign_tagged_transaction_ignored(self, service, account, codec, chain) -> None:
        chain.add_lock(account, codec, 150, 3000, marker_height=160)

        report = await service.run(10)

        assert report.locks == []
        assert report.unlock is None

    @pytest.mark.asyncio
    async def test_unreachable_lock_address_skipped(self, service, account, codec, chain) -> None:
        chain.add_lock(account, codec, 150, 3000)
        lock_address = codec.describe_lock(150, account.lock_pubkey_hash(150)).lock_address
        chain.failing.add(lock_address)

        report = await service.run(10)

        assert report.locks == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, -1])
    async def test_invalid_count(self, service, count) -> None:
        with pytest.raises(GlacierError) as exc_info:
            await service.run(count)
        assert exc_info.value.code == "invalid-scan-count"

    @pytest.mark.asyncio
    async def test_height_failure_is_fatal(self, service, chain) -> None:
        chain.get_current_height = AsyncMock(
            side_effect=ChainDataError("GET /blocks/tip/height failed (503)")
        )
        with pytest.raises(ChainDataError):
            await service.run(10)

    @pytest.mark.asyncio
    async def test_from_config(self, account, chain) -> None:
        config = AppConfig(lock=LockConfig(fee_sats=500, lock_offset=4))
        service = GlacierService.from_config(config, account, chain)
        chain.fund(account.receive_address(0).address, 5000)

        report = await service.run(5)

        assert report.new_lock.lock_height == 204
        assert report.new_lock.outputs[0].value == 4500


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_nothing_sent_by_default(self, service, account, chain) -> None:
        chain.fund(account.receive_address(0).address, 5000)
        await service.run(10)
        assert chain.broadcasted == []

    @pytest.mark.asyncio
    async def test_unlock_sent_before_new_lock(
        self, service, account, codec, chain, metrics
    ) -> None:
        chain.add_lock(account, codec, 150, 3000)
        chain.fund(account.receive_address(0).address, 5000)

        report = await service.run(10, broadcast=True)

        assert chain.broadcasted == [report.unlock_tx.hex, report.new_lock_tx.hex]
        assert report.broadcasts == {
            DraftKind.UNLOCK: report.unlock_tx.txid,
            DraftKind.NEW_LOCK: report.new_lock_tx.txid,
        }
        assert metrics.registry.get_sample_value(
            "glacier_broadcasts_total", {"kind": "unlock", "outcome": "accepted"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_rejection_propagates(self, service, account, chain, metrics) -> None:
        chain.fund(account.receive_address(0).address, 5000)
        chain.reject_broadcast = True

        with pytest.raises(BroadcastRejectedError) as exc_info:
            await service.run(10, broadcast=True)

        assert exc_info.value.reason == "non-final"
        assert exc_info.value.accepted == {}
        assert metrics.registry.get_sample_value(
            "glacier_broadcasts_total", {"kind": "new_lock", "outcome": "rejected"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_rejection_after_unlock_keeps_accepted_txid(
        self, service, account, codec, chain, metrics
    ) -> None:
        chain.add_lock(account, codec, 150, 3000)
        chain.fund(account.receive_address(0).address, 5000)
        chain.accept_limit = 1

        with pytest.raises(BroadcastRejectedError) as exc_info:
            await service.run(10, broadcast=True)

        assert len(chain.broadcasted) == 1
        unlock_txid = Transaction.from_hex(chain.broadcasted[0]).txid()
        assert exc_info.value.accepted == {DraftKind.UNLOCK: unlock_txid}
        assert f"unlock={unlock_txid}" in exc_info.value.message
        assert exc_info.value.reason == "non-final"
        assert metrics.registry.get_sample_value(
            "glacier_broadcasts_total", {"kind": "unlock", "outcome": "accepted"}
        ) == 1.0
