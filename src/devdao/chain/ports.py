"""Capability contracts for the wallet and the on-chain authority.

The core never talks to a blockchain library directly. It depends on
these protocols, which the web3 adapter binds to a live network and
the in-memory authority binds to a local simulation.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol


class PendingTransaction(Protocol):
    """A broadcast write awaiting inclusion."""

    tx_hash: str

    def await_confirmation(self) -> None:
        """Block until the transaction is included.

        Raises:
            AuthorityRejected: the transaction reverted.
            ConfirmationTimeout: stopped waiting; outcome unknown.
        """
        ...


class AuthorityContracts(Protocol):
    """Reads and writes against the membership NFT + DAO contract pair."""

    def balance_of(self, address: str) -> int: ...

    def account_balance(self, address: str) -> int: ...

    def treasury_balance(self) -> int: ...

    def proposal_count(self) -> int: ...

    def proposal_by_id(self, proposal_id: int) -> tuple: ...

    def create_proposal(self, token_id: int) -> PendingTransaction: ...

    def vote_on_proposal(self, choice: int, proposal_id: int) -> PendingTransaction: ...

    def execute_proposal(self, proposal_id: int) -> PendingTransaction: ...


class WalletProvider(Protocol):
    """Connects to a network and optionally to a signing account."""

    def connect(self) -> Any:
        """Return an opaque handle.

        Raises:
            UserRejected: the wallet holder declined.
            ProviderUnavailable: the network cannot be reached.
        """
        ...

    def get_network_id(self, handle: Any) -> int: ...

    def get_address(self, handle: Any) -> Optional[str]:
        """Signing address, or None for a read-only connection."""
        ...

    def open_contracts(self, handle: Any) -> AuthorityContracts: ...
