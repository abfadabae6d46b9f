"""Signer — per-input signing and template-specific finalization.

Inputs of one draft need not share a key: every :class:`DraftInput` names
the branch and index of its own key. Finalization is chosen by the input's
:class:`SpendTemplate`:

- ``P2WPKH``: BIP143 signature hash, witness ``[sig, pubkey]``
- ``CLTV_P2SH``: legacy signature hash over the redeem script, scriptSig
  ``<sig> <pubkey> <redeem_script>`` and no witness

A draft is only returned once every input is finalized.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from glacier_wallet.btc.keys import sign_digest
from glacier_wallet.btc.script import p2pkh_lock_script, push_data
from glacier_wallet.btc.transaction import SIGHASH_ALL, Transaction
from glacier_wallet.errors.definitions import FinalizeError, SigningError
from glacier_wallet.glacier.models import SignedTransaction, SpendTemplate

if TYPE_CHECKING:
    from collections.abc import Callable

    from glacier_wallet.btc.transaction import TxInput
    from glacier_wallet.glacier.account import GlacierAccount
    from glacier_wallet.glacier.models import DraftInput, UnsignedDraft

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Finalizers
# ---------------------------------------------------------------------------


def _finalize_p2wpkh(tx_input: TxInput, draft_input: DraftInput, index: int) -> None:
    if draft_input.signature is None or draft_input.pubkey is None:
        raise FinalizeError(index, "missing signature")
    tx_input.script_sig = b""
    tx_input.witness = [draft_input.signature, draft_input.pubkey]


def _finalize_cltv_p2sh(tx_input: TxInput, draft_input: DraftInput, index: int) -> None:
    if draft_input.signature is None or draft_input.pubkey is None:
        raise FinalizeError(index, "missing signature")
    if draft_input.redeem_script is None:
        raise FinalizeError(index, "missing redeem script")
    tx_input.script_sig = (
        push_data(draft_input.signature)
        + push_data(draft_input.pubkey)
        + push_data(draft_input.redeem_script)
    )
    tx_input.witness = []


_FINALIZERS: dict[SpendTemplate, Callable[[TxInput, DraftInput, int], None]] = {
    SpendTemplate.P2WPKH: _finalize_p2wpkh,
    SpendTemplate.CLTV_P2SH: _finalize_cltv_p2sh,
}


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------


class Signer:
    """Signs and finalizes drafts with keys from one account."""

    def __init__(self, account: GlacierAccount) -> None:
        self._account = account

    def sign(self, draft: UnsignedDraft) -> SignedTransaction:
        """Sign every input of *draft*, then finalize it.

        Raises:
            SigningError: If an input cannot be signed.
            FinalizeError: If an input cannot be finalized.
        """
        unsigned = draft.to_transaction()
        for index in range(len(draft.inputs)):
            self.sign_input(unsigned, draft, index)
        return self.finalize(draft)

    def sign_input(self, unsigned: Transaction, draft: UnsignedDraft, index: int) -> None:
        """Attach a signature and pubkey to ``draft.inputs[index]``."""
        inp = draft.inputs[index]
        key = self._account.derive(inp.branch, inp.index)

        if inp.template == SpendTemplate.P2WPKH:
            script_code = p2pkh_lock_script(key.pubkey_hash())
            digest = unsigned.segwit_v0_sighash(index, script_code, inp.value)
        elif inp.template == SpendTemplate.CLTV_P2SH:
            if inp.redeem_script is None:
                raise SigningError(index, "missing redeem script")
            self._check_previous_output(inp, index)
            digest = unsigned.legacy_sighash(index, inp.redeem_script)
        else:
            raise SigningError(index, f"unsupported template {inp.template}")

        inp.signature = sign_digest(key.key, digest) + bytes([SIGHASH_ALL])
        inp.pubkey = key.public_key()
        logger.debug("Signed input %d (%s, key %s)", index, inp.template, inp.key_path)

    @staticmethod
    def finalize(draft: UnsignedDraft) -> SignedTransaction:
        """Assemble the final transaction from already-signed inputs."""
        tx = draft.to_transaction()
        for index, inp in enumerate(draft.inputs):
            finalizer = _FINALIZERS.get(inp.template)
            if finalizer is None:
                raise FinalizeError(index, f"unsupported template {inp.template}")
            finalizer(tx.inputs[index], inp, index)
        return SignedTransaction(kind=draft.kind, txid=tx.txid(), hex=tx.to_hex(), fee=draft.fee)

    @staticmethod
    def _check_previous_output(inp: DraftInput, index: int) -> None:
        if not inp.prev_tx_hex:
            raise SigningError(index, "missing previous transaction")
        try:
            prev = Transaction.from_hex(inp.prev_tx_hex)
        except ValueError as exc:
            raise SigningError(index, f"unparsable previous transaction: {exc}") from exc
        if prev.txid() != inp.txid:
            raise SigningError(index, f"previous transaction is {prev.txid()}, not {inp.txid}")
        if not 0 <= inp.vout < len(prev.outputs):
            raise SigningError(index, f"previous transaction has no output {inp.vout}")
        if prev.outputs[inp.vout].value != inp.value:
            raise SigningError(
                index,
                f"output value {prev.outputs[inp.vout].value} does not match {inp.value}",
            )
