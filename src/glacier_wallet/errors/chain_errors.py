"""Chain-data and broadcast errors."""

from __future__ import annotations

from glacier_wallet.errors.glacier_errors import GlacierError


class ChainDataError(GlacierError):
    """A chain-data lookup failed (transport error or non-2xx response)."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="chain-data-error")


class BroadcastRejectedError(GlacierError):
    """The network refused a signed transaction.

    Attributes:
        reason: The node's rejection text.
        accepted: Transactions of the same request that were accepted
            before this one, keyed by draft kind.
    """

    def __init__(
        self, message: str, *, reason: str = "", accepted: dict[str, str] | None = None
    ) -> None:
        super().__init__(message, status_code=422, code="broadcast-rejected")
        self.reason = reason
        self.accepted = dict(accepted or {})
