"""Chain session — the single authenticated connection to the network.

Lifecycle:
    UNINITIALIZED → CONNECTED → INVALIDATED
    UNINITIALIZED → INVALIDATED   (connect failed, e.g. wrong network)

An invalidated session is never revived; reconnecting creates a new
session. Handles returned by as_reader()/as_writer() check the session
on every call, so a handle that outlives its session fails with
SessionInvalidated instead of silently talking to a stale connection.
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Optional

from devdao.chain.ports import AuthorityContracts, PendingTransaction, WalletProvider
from devdao.config import network_name
from devdao.errors import (
    DAOClientError,
    NetworkMismatch,
    ProviderUnavailable,
    SessionInvalidated,
    SignerUnavailable,
)

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTED = "connected"
    INVALIDATED = "invalidated"


class Capability(str, enum.Enum):
    READ_ONLY = "read_only"
    READ_WRITE = "read_write"


class ChainReader:
    """Read capability bound to one session."""

    def __init__(self, session: "ChainSession", contracts: AuthorityContracts) -> None:
        self._session = session
        self._contracts = contracts

    def balance_of(self, address: str) -> int:
        self._session.ensure_connected()
        return self._contracts.balance_of(address)

    def account_balance(self, address: str) -> int:
        self._session.ensure_connected()
        return self._contracts.account_balance(address)

    def treasury_balance(self) -> int:
        self._session.ensure_connected()
        return self._contracts.treasury_balance()

    def proposal_count(self) -> int:
        self._session.ensure_connected()
        return self._contracts.proposal_count()

    def proposal_by_id(self, proposal_id: int) -> tuple:
        self._session.ensure_connected()
        return self._contracts.proposal_by_id(proposal_id)


class ChainWriter(ChainReader):
    """Read capability plus the state-changing entry points."""

    def __init__(
        self,
        session: "ChainSession",
        contracts: AuthorityContracts,
        address: str,
    ) -> None:
        super().__init__(session, contracts)
        self.address = address

    def create_proposal(self, token_id: int) -> PendingTransaction:
        self._session.ensure_connected()
        return self._contracts.create_proposal(token_id)

    def vote_on_proposal(self, choice: int, proposal_id: int) -> PendingTransaction:
        self._session.ensure_connected()
        return self._contracts.vote_on_proposal(choice, proposal_id)

    def execute_proposal(self, proposal_id: int) -> PendingTransaction:
        self._session.ensure_connected()
        return self._contracts.execute_proposal(proposal_id)


class ChainSession:
    """Owns one provider connection and validates its network identity.

    Usage:
        session = ChainSession(provider, required_chain_id=11155111)
        session.connect()
        reader = session.as_reader()
        writer = session.as_writer()   # SignerUnavailable if read-only
        session.disconnect()
    """

    def __init__(self, provider: WalletProvider, required_chain_id: int) -> None:
        self._provider = provider
        self._required_chain_id = required_chain_id
        self._state = SessionState.UNINITIALIZED
        self._handle: Any = None
        self._contracts: Optional[AuthorityContracts] = None
        self.network_id: Optional[int] = None
        self.address: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    @property
    def capability(self) -> Optional[Capability]:
        if not self.is_connected:
            return None
        return Capability.READ_WRITE if self.address else Capability.READ_ONLY

    def connect(self) -> "ChainSession":
        """Connect and validate the network.

        Raises:
            NetworkMismatch: connected network differs from the required one.
            UserRejected: from the wallet provider.
            ProviderUnavailable: unreachable, or any transport error while
                connecting.
            SessionInvalidated: this session was already used and closed.
        """
        if self._state != SessionState.UNINITIALIZED:
            raise SessionInvalidated(
                f"Cannot connect a session in state {self._state.value}; "
                f"open a new session"
            )
        try:
            handle = self._provider.connect()
            network_id = int(self._provider.get_network_id(handle))
            if network_id != self._required_chain_id:
                raise NetworkMismatch(
                    expected=self._required_chain_id,
                    actual=network_id,
                    expected_name=network_name(self._required_chain_id),
                )
            address = self._provider.get_address(handle)
            contracts = self._provider.open_contracts(handle)
        except DAOClientError:
            self._state = SessionState.INVALIDATED
            raise
        except Exception as exc:
            self._state = SessionState.INVALIDATED
            raise ProviderUnavailable(f"Could not connect to the network: {exc}") from exc

        self._handle = handle
        self._contracts = contracts
        self.network_id = network_id
        self.address = address
        self._state = SessionState.CONNECTED
        logger.info(
            "Session connected to %s as %s",
            network_name(network_id),
            address or "read-only",
        )
        return self

    def disconnect(self) -> None:
        if self._state == SessionState.CONNECTED:
            logger.info("Session disconnected")
        self._state = SessionState.INVALIDATED
        self._handle = None
        self._contracts = None

    def ensure_connected(self) -> None:
        if self._state != SessionState.CONNECTED:
            raise SessionInvalidated(f"Session is {self._state.value}")

    def as_reader(self) -> ChainReader:
        self.ensure_connected()
        assert self._contracts is not None
        return ChainReader(self, self._contracts)

    def as_writer(self) -> ChainWriter:
        self.ensure_connected()
        assert self._contracts is not None
        if not self.address:
            raise SignerUnavailable(
                "Connection has no signing key; configure DAO_PRIVATE_KEY to "
                "submit transactions"
            )
        return ChainWriter(self, self._contracts, self.address)
