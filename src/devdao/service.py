"""DAO service — unified facade for the governance client.

This is the interface a presentation layer (the CLI, or any UI) talks
to. It owns the single chain session and reacts to two events:

- session established → read treasury, caller NFT balance, proposal count
  (and the catalog if the proposal view is selected)
- proposal view requested → rebuild the catalog

User intents (create, vote, execute) are gated by the ActionGate
against the current instant and then handed to the TransactionManager,
whose resync callback re-reads chain state once the write confirms.

All operations return a ServiceResult. Client errors are never
swallowed: the message is returned verbatim and kept as last_error.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from devdao.chain.ports import WalletProvider
from devdao.chain.session import ChainSession
from devdao.clock import utc_now
from devdao.engine.action_gate import Action, ActionDecision, ActionGate
from devdao.engine.transactions import TransactionManager, TransactionRecord, TxAction
from devdao.errors import DAOClientError
from devdao.models.proposal import EMPTY_CATALOG, Catalog, Vote
from devdao.sync.catalog import CatalogSynchronizer
from devdao.sync.reader import ProposalReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class View(str, enum.Enum):
    """Which tab the presentation layer shows."""
    NONE = ""
    CREATE_PROPOSAL = "Create Proposal"
    VIEW_PROPOSALS = "View Proposals"


@dataclass(frozen=True)
class DashboardState:
    """Everything the presentation layer renders."""
    connected: bool
    address: Optional[str]
    nft_balance: int
    treasury_balance: int
    proposal_count: int
    catalog: Catalog
    busy: bool
    selected_view: View
    target_token_id: Optional[int]
    last_error: Optional[str]


class DAOService:
    """Session lifecycle controller and intent relay.

    Usage:
        service = DAOService(provider, required_chain_id=11155111)
        service.connect()
        service.select_view(View.VIEW_PROPOSALS)
        for pid, decision in service.decisions().items(): ...
        service.vote(0, Vote.YAY)
        service.state()
    """

    def __init__(
        self,
        provider: WalletProvider,
        required_chain_id: int,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._provider = provider
        self._chain_id = required_chain_id
        self._clock = clock

        self._session: Optional[ChainSession] = None
        self._reader: Optional[ProposalReader] = None
        self._synchronizer: Optional[CatalogSynchronizer] = None
        self._transactions: Optional[TransactionManager] = None

        self._nft_balance = 0
        self._treasury_balance = 0
        self._proposal_count = 0
        self._selected_view = View.NONE
        self._target_token_id: Optional[int] = None
        self._last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def session(self) -> Optional[ChainSession]:
        return self._session

    @property
    def transactions(self) -> Optional[TransactionManager]:
        return self._transactions

    def connect(self) -> ServiceResult:
        """Open a new session, replacing any existing one, and refresh."""
        if self._transactions is not None and self._transactions.busy:
            return self._failure("Cannot reconnect while a transaction is in flight")
        self._teardown()

        session = ChainSession(self._provider, self._chain_id)
        try:
            session.connect()
        except DAOClientError as exc:
            return self._failure(str(exc))

        self._session = session
        self._reader = ProposalReader(session.as_reader())
        self._synchronizer = CatalogSynchronizer(self._reader, clock=self._clock)
        self._transactions = TransactionManager(session, self._resync, clock=self._clock)
        return self._on_session_established()

    def disconnect(self) -> ServiceResult:
        if self._transactions is not None and self._transactions.busy:
            return self._failure("Cannot disconnect while a transaction is in flight")
        self._teardown()
        return ServiceResult(success=True)

    def _teardown(self) -> None:
        if self._session is not None:
            self._session.disconnect()
        self._session = None
        self._reader = None
        self._synchronizer = None
        self._transactions = None
        self._nft_balance = 0
        self._treasury_balance = 0
        self._proposal_count = 0

    def _on_session_established(self) -> ServiceResult:
        try:
            self._refresh_overview()
            if self._selected_view == View.VIEW_PROPOSALS:
                self._require_synchronizer().sync_all(self._proposal_count)
        except DAOClientError as exc:
            return self._failure(str(exc), connected=True)
        self._last_error = None
        return ServiceResult(success=True, data=self._overview())

    # ------------------------------------------------------------------
    # Views and refresh
    # ------------------------------------------------------------------

    def select_view(self, view: View) -> ServiceResult:
        """Switch tabs. Selecting the proposal view rebuilds the catalog."""
        self._selected_view = view
        if view == View.VIEW_PROPOSALS:
            return self.refresh_catalog()
        return ServiceResult(success=True)

    def set_target_token_id(self, token_id: int) -> ServiceResult:
        if token_id < 0:
            return self._failure(f"Token id must be >= 0, got {token_id}")
        self._target_token_id = token_id
        return ServiceResult(success=True, data={"target_token_id": token_id})

    def refresh_catalog(self) -> ServiceResult:
        if self._synchronizer is None:
            return self._failure("Not connected")
        try:
            catalog = self._synchronizer.sync_all(self._proposal_count)
        except DAOClientError as exc:
            return self._failure(str(exc))
        return ServiceResult(success=True, data={"proposals": len(catalog)})

    def refresh(self) -> ServiceResult:
        """Full resynchronization: balances, count and catalog."""
        if self._transactions is None:
            return self._failure("Not connected")
        try:
            self._transactions.force_resync()
        except DAOClientError as exc:
            return self._failure(str(exc))
        return ServiceResult(success=True, data=self._overview())

    def _read_overview(self) -> tuple[int, int, int]:
        reader = self._require_reader()
        address = self._session.address if self._session is not None else None
        treasury = reader.read_treasury_balance()
        nft_balance = reader.read_caller_balance(address) if address else 0
        count = reader.read_proposal_count()
        return treasury, nft_balance, count

    def _refresh_overview(self) -> None:
        # Assign only once every read succeeded
        self._treasury_balance, self._nft_balance, self._proposal_count = (
            self._read_overview()
        )

    def _resync(self, action: Optional[TxAction]) -> None:
        reader = self._require_reader()
        treasury, nft_balance, count = (
            self._treasury_balance, self._nft_balance, self._proposal_count,
        )
        if action is None:
            treasury, nft_balance, count = self._read_overview()
        elif action == TxAction.CREATE_PROPOSAL:
            count = reader.read_proposal_count()
        elif action == TxAction.EXECUTE:
            treasury = reader.read_treasury_balance()
        self._require_synchronizer().sync_all(count)
        # Published together with the catalog they describe
        self._treasury_balance = treasury
        self._nft_balance = nft_balance
        self._proposal_count = count

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def decide(self, proposal_id: int) -> Optional[ActionDecision]:
        proposal = self.catalog.get(proposal_id)
        if proposal is None:
            return None
        return ActionGate.decide(proposal, self._clock(), self._nft_balance)

    def decisions(self) -> dict[int, ActionDecision]:
        """Legal actions for every catalog proposal, as of now."""
        return ActionGate.decide_all(self.catalog, self._clock(), self._nft_balance)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def create_proposal(self, token_id: Optional[int] = None) -> ServiceResult:
        if token_id is None:
            token_id = self._target_token_id
        if token_id is None:
            return self._failure("No target token id set")
        if token_id < 0:
            return self._failure(f"Token id must be >= 0, got {token_id}")
        if not ActionGate.can_create_proposal(self._nft_balance):
            return self._failure(
                "You do not own any membership NFTs; you cannot create or vote on proposals"
            )
        return self._submit(lambda tx: tx.create_proposal(token_id))

    def vote(self, proposal_id: int, choice: Vote) -> ServiceResult:
        gate_error = self._gate(proposal_id, Action.for_vote(choice))
        if gate_error is not None:
            return self._failure(gate_error)
        return self._submit(lambda tx: tx.vote(proposal_id, choice))

    def execute(self, proposal_id: int) -> ServiceResult:
        gate_error = self._gate(proposal_id, Action.EXECUTE)
        if gate_error is not None:
            return self._failure(gate_error)
        return self._submit(lambda tx: tx.execute(proposal_id))

    def _gate(self, proposal_id: int, action: Action) -> Optional[str]:
        if self._transactions is None:
            return "Not connected"
        decision = self.decide(proposal_id)
        if decision is None:
            return f"Proposal {proposal_id} is not in the catalog; refresh proposals first"
        if not decision.allows(action):
            return (
                f"Cannot {action.value.replace('_', ' ')} proposal {proposal_id}: "
                f"{decision.description}"
            )
        return None

    def _submit(
        self, run: Callable[[TransactionManager], TransactionRecord],
    ) -> ServiceResult:
        if self._transactions is None:
            return self._failure("Not connected")
        try:
            record = run(self._transactions)
        except DAOClientError as exc:
            return self._failure(str(exc))
        self._last_error = None
        return ServiceResult(
            success=True,
            data={
                "action": record.action.value,
                "tx_hash": record.tx_hash,
                "state": record.state.value,
            },
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def catalog(self) -> Catalog:
        if self._synchronizer is None:
            return EMPTY_CATALOG
        return self._synchronizer.catalog

    @property
    def busy(self) -> bool:
        return self._transactions is not None and self._transactions.busy

    def state(self) -> DashboardState:
        return DashboardState(
            connected=self._session is not None and self._session.is_connected,
            address=self._session.address if self._session is not None else None,
            nft_balance=self._nft_balance,
            treasury_balance=self._treasury_balance,
            proposal_count=self._proposal_count,
            catalog=self.catalog,
            busy=self.busy,
            selected_view=self._selected_view,
            target_token_id=self._target_token_id,
            last_error=self._last_error,
        )

    def _overview(self) -> dict[str, Any]:
        return {
            "address": self._session.address if self._session is not None else None,
            "nft_balance": self._nft_balance,
            "treasury_balance": self._treasury_balance,
            "proposal_count": self._proposal_count,
        }

    def _require_reader(self) -> ProposalReader:
        if self._reader is None:
            raise DAOClientError("Not connected")
        return self._reader

    def _require_synchronizer(self) -> CatalogSynchronizer:
        if self._synchronizer is None:
            raise DAOClientError("Not connected")
        return self._synchronizer

    def _failure(self, message: str, **data: Any) -> ServiceResult:
        logger.warning("%s", message)
        self._last_error = message
        return ServiceResult(success=False, errors=[message], data=dict(data))
