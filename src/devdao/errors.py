"""Error taxonomy for the governance client.

Every failure the client can report derives from DAOClientError.
Components raise; the service facade converts errors into
ServiceResult values so that the presentation layer always receives
the message verbatim.
"""

from __future__ import annotations

from typing import Optional


class DAOClientError(Exception):
    """Base class for all client-side failures."""


# ---------------------------------------------------------------------------
# Session / wallet layer
# ---------------------------------------------------------------------------

class NetworkMismatch(DAOClientError):
    """Connected to a network other than the configured one.

    Fatal to the session. Recoverable by reconnecting on the right network.
    """

    def __init__(self, expected: int, actual: int, expected_name: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Change the network to {expected_name} "
            f"(connected to chain {actual}, expected {expected})"
        )


class UserRejected(DAOClientError):
    """The wallet holder declined the connection or signature request."""


class ProviderUnavailable(DAOClientError):
    """No provider could be reached."""


class SignerUnavailable(DAOClientError):
    """A write was requested but the session has no signing key."""


class SessionInvalidated(DAOClientError):
    """A handle from a disconnected or replaced session was used."""


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class ChainReadError(DAOClientError):
    """A read against the authority failed. Safe to retry."""


class NotFound(ChainReadError):
    """The requested proposal does not exist."""

    def __init__(self, proposal_id: int) -> None:
        self.proposal_id = proposal_id
        super().__init__(f"Proposal {proposal_id} not found")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class AuthorityRejected(DAOClientError):
    """The contract reverted the call. The message is the authority's own."""

    def __init__(self, message: str, tx_hash: Optional[str] = None) -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class ConfirmationTimeout(DAOClientError):
    """Stopped waiting for inclusion. The outcome is unknown, not rolled back."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(
            f"Timed out waiting for {tx_hash}; outcome unknown, resynchronize "
            f"before further action"
        )


class TransactionInFlight(DAOClientError):
    """A write was submitted while another one is still in flight."""
