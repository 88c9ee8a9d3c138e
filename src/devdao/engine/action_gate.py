"""Action gate — which actions a caller may take on a proposal right now.

Pure computation: no I/O, deterministic in its inputs. Decision table,
first matching rule wins:

    1. caller voting weight == 0      → {}                    NO_VOTING_RIGHTS
    2. proposal executed              → {}                    ALREADY_EXECUTED
    3. now < deadline                 → {VOTE_YAY, VOTE_NAY}  VOTING_OPEN
    4. now >= deadline, not executed  → {EXECUTE}             READY_TO_EXECUTE

Decisions are never cached: a proposal whose deadline passes between two
renders re-gates from VOTING_OPEN to READY_TO_EXECUTE without any chain
read. Whether execution buys the NFT is decided by the contract from
the tallies at execution time, not here.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from devdao.models.proposal import Catalog, Proposal, Vote


class Action(str, enum.Enum):
    VOTE_YAY = "vote_yay"
    VOTE_NAY = "vote_nay"
    EXECUTE = "execute"

    @classmethod
    def for_vote(cls, choice: Vote) -> "Action":
        return cls.VOTE_YAY if choice == Vote.YAY else cls.VOTE_NAY


class GateReason(str, enum.Enum):
    NO_VOTING_RIGHTS = "no_voting_rights"
    ALREADY_EXECUTED = "already_executed"
    VOTING_OPEN = "voting_open"
    READY_TO_EXECUTE = "ready_to_execute"


_REASON_TEXT: dict[GateReason, str] = {
    GateReason.NO_VOTING_RIGHTS: "You do not own any membership NFTs; you cannot create or vote on proposals",
    GateReason.ALREADY_EXECUTED: "Proposal executed",
    GateReason.VOTING_OPEN: "Voting is open",
    GateReason.READY_TO_EXECUTE: "Voting closed; proposal can be executed",
}


@dataclass(frozen=True)
class ActionDecision:
    """Legal actions for one proposal at one instant."""
    legal_actions: frozenset[Action]
    reason: GateReason

    def allows(self, action: Action) -> bool:
        return action in self.legal_actions

    @property
    def description(self) -> str:
        return _REASON_TEXT[self.reason]


class ActionGate:
    """Stateless decision functions over proposals."""

    @staticmethod
    def decide(
        proposal: Proposal,
        now: datetime,
        caller_voting_weight: int,
    ) -> ActionDecision:
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        if caller_voting_weight < 0:
            raise ValueError(f"voting weight must be >= 0, got {caller_voting_weight}")

        if caller_voting_weight == 0:
            return ActionDecision(frozenset(), GateReason.NO_VOTING_RIGHTS)
        if proposal.executed:
            return ActionDecision(frozenset(), GateReason.ALREADY_EXECUTED)
        if now < proposal.deadline:
            return ActionDecision(
                frozenset({Action.VOTE_YAY, Action.VOTE_NAY}), GateReason.VOTING_OPEN,
            )
        return ActionDecision(frozenset({Action.EXECUTE}), GateReason.READY_TO_EXECUTE)

    @staticmethod
    def decide_all(
        catalog: Catalog,
        now: datetime,
        caller_voting_weight: int,
    ) -> dict[int, ActionDecision]:
        """Decide every proposal in the catalog against the same instant."""
        return {
            p.proposal_id: ActionGate.decide(p, now, caller_voting_weight)
            for p in catalog
        }

    @staticmethod
    def can_create_proposal(caller_voting_weight: int) -> bool:
        return caller_voting_weight > 0
