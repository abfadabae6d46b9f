"""Error definitions and per-input signing errors."""

from __future__ import annotations

from glacier_wallet.errors.glacier_errors import GlacierError

# -- Configuration -----------------------------------------------------------

ErrMissingMnemonic = GlacierError(
    "wallet mnemonic is not configured", status_code=503, code="missing-mnemonic"
)
ErrInvalidMnemonic = GlacierError(
    "wallet mnemonic is invalid", status_code=503, code="invalid-mnemonic"
)

# -- Validation --------------------------------------------------------------

ErrInvalidScanCount = GlacierError(
    "scan count is out of range", status_code=400, code="invalid-scan-count"
)

# -- Drafting ----------------------------------------------------------------

ErrNotEnoughFunds = GlacierError(
    "swept value does not cover the fee", status_code=422, code="not-enough-funds"
)
ErrNoSweepAddress = GlacierError(
    "no unused receive address available to sweep matured locks",
    status_code=422,
    code="no-sweep-address",
)
ErrInvalidLockHeight = GlacierError(
    "lock height is not a block height", status_code=422, code="invalid-lock-height"
)


# -- Signing -----------------------------------------------------------------


class SigningError(GlacierError):
    """An input could not be signed."""

    def __init__(self, input_index: int, reason: str) -> None:
        super().__init__(
            f"cannot sign input {input_index}: {reason}",
            status_code=500,
            code="signing-failed",
        )
        self.input_index = input_index


class FinalizeError(GlacierError):
    """An input could not be finalized; the whole transaction is abandoned."""

    def __init__(self, input_index: int, reason: str) -> None:
        super().__init__(
            f"cannot finalize input {input_index}: {reason}",
            status_code=500,
            code="finalize-failed",
        )
        self.input_index = input_index
