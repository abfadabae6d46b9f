"""Domain models for scanning, lock discovery and transaction drafts."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from glacier_wallet.btc.transaction import SEQUENCE_FINAL, Transaction

if TYPE_CHECKING:
    from glacier_wallet.chain.mempool.client import ChainTransaction

# Reserved branches below the account node
RECEIVE_BRANCH = 0
LOCK_BRANCH = 3


class SpendTemplate(enum.StrEnum):
    """How an input is signed and finalized."""

    P2WPKH = "p2wpkh"
    CLTV_P2SH = "cltv_p2sh"


class DraftKind(enum.StrEnum):
    """The two transactions a request can produce."""

    NEW_LOCK = "new_lock"
    UNLOCK = "unlock"


@dataclass
class DerivedAddress:
    """A receive address visited during a scan."""

    branch: int
    index: int
    path: str
    address: str
    used: bool = False
    balance: int = 0


@dataclass(frozen=True)
class LockDescriptor:
    """A time lock owned by this wallet.

    ``lock_address`` is always the P2SH address of ``redeem_script``.
    """

    lock_height: int
    owner_pubkey_hash: bytes
    redeem_script: bytes
    lock_address: str


@dataclass
class LockStatus:
    """A validated lock with its current on-chain state."""

    descriptor: LockDescriptor
    balance: int
    spendable: bool

    @property
    def lock_height(self) -> int:
        return self.descriptor.lock_height

    @property
    def address(self) -> str:
        return self.descriptor.lock_address


@dataclass
class DraftInput:
    """One input of an unsigned draft plus what the signer needs for it.

    Attributes:
        txid: Previous transaction id (display hex).
        vout: Output index in the previous transaction.
        value: Value of the spent output in satoshis.
        template: Selects the signature hash and the finalizer.
        branch: Derivation branch of the spending key below the account.
        index: Derivation index of the spending key.
        script_pubkey: Locking script of the spent output.
        sequence: nSequence of the input.
        redeem_script: The CLTV redeem script (CLTV_P2SH only).
        prev_tx_hex: Full previous transaction (CLTV_P2SH only).
        lock_height: Height the spent lock matures at (CLTV_P2SH only).
        signature: DER signature plus sighash byte, once signed.
        pubkey: Public key that produced ``signature``.
    """

    txid: str
    vout: int
    value: int
    template: SpendTemplate
    branch: int
    index: int
    script_pubkey: bytes
    sequence: int = SEQUENCE_FINAL
    redeem_script: bytes | None = None
    prev_tx_hex: str | None = None
    lock_height: int | None = None
    signature: bytes | None = None
    pubkey: bytes | None = None

    @property
    def key_path(self) -> str:
        """Path of the spending key relative to the account node."""
        return f"{self.branch}/{self.index}"


@dataclass(frozen=True)
class DraftOutput:
    """One output of a draft."""

    value: int
    script_pubkey: bytes
    address: str | None = None


@dataclass
class UnsignedDraft:
    """An unsigned transaction template with per-input signing metadata."""

    kind: DraftKind
    inputs: list[DraftInput] = field(default_factory=list)
    outputs: list[DraftOutput] = field(default_factory=list)
    locktime: int = 0
    version: int = 2
    lock_height: int | None = None
    lock_address: str | None = None

    @property
    def total_input(self) -> int:
        return sum(inp.value for inp in self.inputs)

    @property
    def total_output(self) -> int:
        return sum(out.value for out in self.outputs)

    @property
    def fee(self) -> int:
        return self.total_input - self.total_output

    def to_transaction(self) -> Transaction:
        """The unsigned transaction (empty scriptSigs and witnesses)."""
        tx = Transaction(version=self.version, locktime=self.locktime)
        for inp in self.inputs:
            tx.add_input(bytes.fromhex(inp.txid)[::-1], inp.vout, sequence=inp.sequence)
        for out in self.outputs:
            tx.add_output(out.value, out.script_pubkey)
        return tx

    @property
    def unsigned_hex(self) -> str:
        return self.to_transaction().to_hex()


@dataclass(frozen=True)
class SignedTransaction:
    """A fully finalized, broadcastable transaction."""

    kind: DraftKind
    txid: str
    hex: str
    fee: int


@dataclass(frozen=True)
class LockCandidate:
    """A transaction carrying a Glacier discovery tag, not yet validated."""

    transaction: ChainTransaction
    marker_height: int | None

    @property
    def txid(self) -> str:
        return self.transaction.txid


@dataclass
class ScanResult:
    """Everything a receive-address scan produced.

    Attributes:
        addresses: Visited addresses in index order.
        candidates: Lock-tagged transactions keyed by txid.
        funding_inputs: P2WPKH inputs for the new-lock draft.
    """

    addresses: list[DerivedAddress] = field(default_factory=list)
    candidates: dict[str, LockCandidate] = field(default_factory=dict)
    funding_inputs: list[DraftInput] = field(default_factory=list)

    @property
    def first_unused(self) -> DerivedAddress | None:
        """The first visited address without history, if any."""
        return next((a for a in self.addresses if not a.used), None)


@dataclass
class GlacierReport:
    """Result of one wallet request."""

    network: str
    xpub: str
    current_height: int
    addresses: list[DerivedAddress]
    locks: list[LockStatus]
    new_lock: UnsignedDraft | None = None
    new_lock_tx: SignedTransaction | None = None
    unlock: UnsignedDraft | None = None
    unlock_tx: SignedTransaction | None = None
    broadcasts: dict[str, str] = field(default_factory=dict)

