"""LockRegistry — proves lock candidates belong to this wallet.

The discovery tag only says which height to try. A candidate is accepted
when the lock-branch key at that height rebuilds a redeem script whose P2SH
address is exactly the one on chain. Anything else is "not our lock" and is
dropped without raising.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from glacier_wallet.btc.script import ScriptType, detect_script_type
from glacier_wallet.btc.transaction import LOCKTIME_THRESHOLD
from glacier_wallet.metrics.collector import GlacierMetrics

if TYPE_CHECKING:
    from collections.abc import Iterable

    from glacier_wallet.glacier.account import GlacierAccount
    from glacier_wallet.glacier.codec import LockScriptCodec
    from glacier_wallet.glacier.models import LockCandidate, LockDescriptor

logger = logging.getLogger(__name__)


class LockRegistry:
    """Validates lock candidates by re-deriving their redeem scripts."""

    def __init__(
        self,
        account: GlacierAccount,
        codec: LockScriptCodec,
        metrics: GlacierMetrics | None = None,
    ) -> None:
        self._account = account
        self._codec = codec
        self._metrics = metrics or GlacierMetrics()

    def validate(self, candidate: LockCandidate) -> LockDescriptor | None:
        """Return the descriptor of *candidate*, or None if it is not ours."""
        reason = self._reject_reason(candidate)
        if reason is not None:
            logger.debug("Discarding lock candidate %s: %s", candidate.txid, reason)
            self._metrics.lock_discarded()
            return None

        outputs = candidate.transaction.outputs
        lock_height = candidate.marker_height
        assert lock_height is not None
        lock_output = next(
            out for out in outputs if detect_script_type(out.script_pubkey) == ScriptType.P2SH
        )
        descriptor = self._codec.describe_lock(
            lock_height, self._account.lock_pubkey_hash(lock_height)
        )
        if descriptor.lock_address != lock_output.address:
            logger.debug(
                "Discarding lock candidate %s: address mismatch for height %d "
                "(chain %s, derived %s)",
                candidate.txid,
                lock_height,
                lock_output.address,
                descriptor.lock_address,
            )
            self._metrics.lock_discarded()
            return None

        self._metrics.lock_validated()
        return descriptor

    def collect(self, candidates: Iterable[LockCandidate]) -> list[LockDescriptor]:
        """Validate every candidate; one descriptor per height, sorted by height."""
        by_height: dict[int, LockDescriptor] = {}
        for candidate in candidates:
            descriptor = self.validate(candidate)
            if descriptor is not None:
                by_height.setdefault(descriptor.lock_height, descriptor)
        return [by_height[h] for h in sorted(by_height)]

    def _reject_reason(self, candidate: LockCandidate) -> str | None:
        outputs = candidate.transaction.outputs
        if len(outputs) != 2:
            return f"expected 2 outputs, got {len(outputs)}"
        types = [detect_script_type(out.script_pubkey) for out in outputs]
        if types.count(ScriptType.NULL_DATA) != 1:
            return "expected exactly one null-data output"
        if candidate.marker_height is None:
            return "unparsable discovery tag"
        if candidate.marker_height >= LOCKTIME_THRESHOLD:
            return f"height {candidate.marker_height} is not a block height"
        lock_output = outputs[1 - types.index(ScriptType.NULL_DATA)]
        if detect_script_type(lock_output.script_pubkey) != ScriptType.P2SH:
            return "other output is not P2SH"
        if not lock_output.address:
            return "lock output has no address"
        return None
