"""In-memory authority — a local simulation of the NFT and DAO contracts.

Mirrors the contract rules the client depends on:
- only NFT holders may create, vote or execute (NOT_A_DAO_MEMBER)
- a proposal may only target an NFT still for sale (NFT_NOT_FOR_SALE)
- voting closes at the deadline (DEADLINE_EXCEEDED)
- each membership NFT votes once per proposal (ALREADY_VOTED)
- execution waits for the deadline (DEADLINE_NOT_EXCEEDED) and happens
  once (PROPOSAL_ALREADY_EXECUTED); a YAY majority buys the NFT from
  the treasury (NOT_ENOUGH_FUNDS)

Writes are checked when submitted, as gas estimation would, and applied
when confirmed. Confirmation can be stalled to model a timed-out wait
whose effect still lands later, and reads can be made to fail.
"""

from __future__ import annotations

import hashlib
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from devdao.clock import ManualClock
from devdao.config import SEPOLIA_CHAIN_ID
from devdao.errors import (
    AuthorityRejected,
    ConfirmationTimeout,
    ProviderUnavailable,
    SignerUnavailable,
    UserRejected,
)

logger = logging.getLogger(__name__)

VOTING_PERIOD = timedelta(minutes=5)
DEFAULT_NFT_PRICE = 10 ** 17  # 0.1 ether
DEFAULT_DAO_ADDRESS = "0x00000000000000000000000000000000000da0da"

_REVERT_PREFIX = "execution reverted: "


@dataclass
class _ProposalSlot:
    token_id: int
    deadline: int
    yay_votes: int = 0
    nay_votes: int = 0
    executed: bool = False
    voted_tokens: set[int] = field(default_factory=set)

    def as_record(self) -> tuple:
        return (self.token_id, self.deadline, self.yay_votes, self.nay_votes, self.executed)


class InMemoryPendingTransaction:
    """Pending write whose effect is applied on confirmation."""

    def __init__(
        self,
        authority: "InMemoryAuthority",
        tx_hash: str,
        apply: Callable[[], None],
    ) -> None:
        self._authority = authority
        self._apply = apply
        self.tx_hash = tx_hash

    def await_confirmation(self) -> None:
        self._authority._confirm(self)

    def _mine(self) -> None:
        try:
            self._apply()
        except AuthorityRejected as exc:
            raise AuthorityRejected(str(exc), tx_hash=self.tx_hash)


class InMemoryAuthority:
    """Simulated membership NFT + DAO contract pair."""

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        treasury: int = 0,
        nft_price: int = DEFAULT_NFT_PRICE,
        dao_address: str = DEFAULT_DAO_ADDRESS,
    ) -> None:
        self._clock = clock or ManualClock()
        self.dao_address = dao_address
        self.nft_price = nft_price
        self._eth: dict[str, int] = {dao_address.lower(): treasury}
        self._tokens: dict[str, list[int]] = {}
        self._next_token = itertools.count()
        self._proposals: list[_ProposalSlot] = []
        self._sold: set[int] = set()
        self._nonce = itertools.count()
        self._stalled = False
        self._pending: list[InMemoryPendingTransaction] = []
        self._failing_reads: Optional[set[int]] = None
        self.on_confirm: Optional[Callable[[str], None]] = None

    # ------------------------------------------------------------------
    # Setup and fault injection
    # ------------------------------------------------------------------

    def mint(self, address: str, count: int = 1) -> list[int]:
        """Give `address` membership NFTs; returns the new token ids."""
        minted = [next(self._next_token) for _ in range(count)]
        self._tokens.setdefault(address.lower(), []).extend(minted)
        return minted

    def fund_treasury(self, amount: int) -> None:
        key = self.dao_address.lower()
        self._eth[key] = self._eth.get(key, 0) + amount

    def is_sold(self, token_id: int) -> bool:
        return token_id in self._sold

    def fail_reads(self, proposal_ids: Optional[set[int]] = None) -> None:
        """Make reads fail: of the given proposal ids, or of everything."""
        self._failing_reads = set(proposal_ids) if proposal_ids is not None else set()

    def heal(self) -> None:
        self._failing_reads = None

    def stall_confirmations(self, stalled: bool = True) -> None:
        """While stalled, confirmation waits time out and writes stay pending."""
        self._stalled = stalled

    def mine_pending(self) -> list[tuple[str, Optional[str]]]:
        """Apply stalled writes. Returns (tx_hash, revert reason or None)."""
        outcomes: list[tuple[str, Optional[str]]] = []
        pending, self._pending = self._pending, []
        for tx in pending:
            try:
                tx._mine()
            except AuthorityRejected as exc:
                outcomes.append((tx.tx_hash, str(exc)))
            else:
                outcomes.append((tx.tx_hash, None))
        return outcomes

    def contracts_for(self, sender: Optional[str]) -> "InMemoryContracts":
        return InMemoryContracts(self, sender)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _check_read(self, proposal_id: Optional[int] = None) -> None:
        if self._failing_reads is None:
            return
        if not self._failing_reads or proposal_id in self._failing_reads:
            raise ConnectionError("simulated RPC failure")

    def balance_of(self, address: str) -> int:
        self._check_read()
        return len(self._tokens.get(address.lower(), []))

    def account_balance(self, address: str) -> int:
        self._check_read()
        return self._eth.get(address.lower(), 0)

    def treasury_balance(self) -> int:
        return self.account_balance(self.dao_address)

    def proposal_count(self) -> int:
        self._check_read()
        return len(self._proposals)

    def proposal_by_id(self, proposal_id: int) -> tuple:
        self._check_read(proposal_id)
        if 0 <= proposal_id < len(self._proposals):
            return self._proposals[proposal_id].as_record()
        # Unset mapping entry
        return (0, 0, 0, 0, False)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_proposal(self, sender: str, token_id: int) -> InMemoryPendingTransaction:
        self._require_member(sender)
        self._require_for_sale(token_id)

        def apply() -> None:
            self._require_member(sender)
            self._require_for_sale(token_id)
            deadline = self._clock() + VOTING_PERIOD
            self._proposals.append(
                _ProposalSlot(token_id=token_id, deadline=int(deadline.timestamp()))
            )

        return self._submit("createProposal", sender, apply)

    def vote_on_proposal(
        self, sender: str, choice: int, proposal_id: int,
    ) -> InMemoryPendingTransaction:
        self._check_vote(sender, proposal_id)

        def apply() -> None:
            unused = self._check_vote(sender, proposal_id)
            slot = self._proposals[proposal_id]
            if int(choice) == 0:
                slot.yay_votes += len(unused)
            else:
                slot.nay_votes += len(unused)
            slot.voted_tokens.update(unused)

        return self._submit("voteOnProposal", sender, apply)

    def execute_proposal(self, sender: str, proposal_id: int) -> InMemoryPendingTransaction:
        self._check_execute(sender, proposal_id)

        def apply() -> None:
            slot = self._check_execute(sender, proposal_id)
            if slot.yay_votes > slot.nay_votes:
                treasury = self.dao_address.lower()
                if self._eth.get(treasury, 0) < self.nft_price:
                    self._revert("NOT_ENOUGH_FUNDS")
                self._eth[treasury] -= self.nft_price
                self._sold.add(slot.token_id)
            slot.executed = True

        return self._submit("executeProposal", sender, apply)

    # ------------------------------------------------------------------
    # Rule checks
    # ------------------------------------------------------------------

    @staticmethod
    def _revert(reason: str) -> None:
        raise AuthorityRejected(_REVERT_PREFIX + reason)

    def _now_seconds(self) -> int:
        return int(self._clock().timestamp())

    def _require_member(self, sender: str) -> list[int]:
        tokens = self._tokens.get(sender.lower(), [])
        if not tokens:
            self._revert("NOT_A_DAO_MEMBER")
        return tokens

    def _require_for_sale(self, token_id: int) -> None:
        if token_id < 0 or token_id in self._sold:
            self._revert("NFT_NOT_FOR_SALE")

    def _slot(self, proposal_id: int) -> _ProposalSlot:
        if not 0 <= proposal_id < len(self._proposals):
            self._revert("PROPOSAL_DOES_NOT_EXIST")
        return self._proposals[proposal_id]

    def _check_vote(self, sender: str, proposal_id: int) -> list[int]:
        tokens = self._require_member(sender)
        slot = self._slot(proposal_id)
        if slot.deadline <= self._now_seconds():
            self._revert("DEADLINE_EXCEEDED")
        unused = [t for t in tokens if t not in slot.voted_tokens]
        if not unused:
            self._revert("ALREADY_VOTED")
        return unused

    def _check_execute(self, sender: str, proposal_id: int) -> _ProposalSlot:
        self._require_member(sender)
        slot = self._slot(proposal_id)
        if slot.deadline > self._now_seconds():
            self._revert("DEADLINE_NOT_EXCEEDED")
        if slot.executed:
            self._revert("PROPOSAL_ALREADY_EXECUTED")
        return slot

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _submit(
        self, method: str, sender: str, apply: Callable[[], None],
    ) -> InMemoryPendingTransaction:
        nonce = next(self._nonce)
        digest = hashlib.sha256(f"{nonce}:{sender}:{method}".encode("utf-8")).hexdigest()
        tx = InMemoryPendingTransaction(self, "0x" + digest, apply)
        logger.debug("Submitted %s %s from %s", method, tx.tx_hash, sender)
        return tx

    def _confirm(self, tx: InMemoryPendingTransaction) -> None:
        if self.on_confirm is not None:
            self.on_confirm(tx.tx_hash)
        if self._stalled:
            self._pending.append(tx)
            raise ConfirmationTimeout(tx.tx_hash)
        tx._mine()


class InMemoryContracts:
    """AuthorityContracts view of the simulation for one sender."""

    def __init__(self, authority: InMemoryAuthority, sender: Optional[str]) -> None:
        self._authority = authority
        self._sender = sender

    def balance_of(self, address: str) -> int:
        return self._authority.balance_of(address)

    def account_balance(self, address: str) -> int:
        return self._authority.account_balance(address)

    def treasury_balance(self) -> int:
        return self._authority.treasury_balance()

    def proposal_count(self) -> int:
        return self._authority.proposal_count()

    def proposal_by_id(self, proposal_id: int) -> tuple:
        return self._authority.proposal_by_id(proposal_id)

    def create_proposal(self, token_id: int) -> InMemoryPendingTransaction:
        return self._authority.create_proposal(self._require_sender(), token_id)

    def vote_on_proposal(self, choice: int, proposal_id: int) -> InMemoryPendingTransaction:
        return self._authority.vote_on_proposal(self._require_sender(), choice, proposal_id)

    def execute_proposal(self, proposal_id: int) -> InMemoryPendingTransaction:
        return self._authority.execute_proposal(self._require_sender(), proposal_id)

    def _require_sender(self) -> str:
        if self._sender is None:
            raise SignerUnavailable("No signing account configured")
        return self._sender


@dataclass(frozen=True)
class InMemoryHandle:
    address: Optional[str]


class InMemoryWalletProvider:
    """WalletProvider connecting to an InMemoryAuthority.

    Args:
        authority: The simulated contracts.
        chain_id: Network id reported on connect.
        address: Signing address, or None for a read-only connection.
        reject: Simulate the wallet holder declining the connection.
        available: False simulates an unreachable provider.
    """

    def __init__(
        self,
        authority: InMemoryAuthority,
        chain_id: int = SEPOLIA_CHAIN_ID,
        address: Optional[str] = None,
        reject: bool = False,
        available: bool = True,
    ) -> None:
        self.authority = authority
        self.chain_id = chain_id
        self.address = address
        self.reject = reject
        self.available = available

    def connect(self) -> InMemoryHandle:
        if not self.available:
            raise ProviderUnavailable("In-memory provider is offline")
        if self.reject:
            raise UserRejected("User rejected the connection request")
        return InMemoryHandle(address=self.address)

    def get_network_id(self, handle: InMemoryHandle) -> int:
        return self.chain_id

    def get_address(self, handle: InMemoryHandle) -> Optional[str]:
        return handle.address

    def open_contracts(self, handle: InMemoryHandle) -> InMemoryContracts:
        return self.authority.contracts_for(handle.address)
