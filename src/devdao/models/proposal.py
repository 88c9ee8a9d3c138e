"""Proposal and catalog data models.

A Proposal is an immutable snapshot of one on-chain record. It is
re-fetched, never mutated locally: a vote or execution only becomes
visible after the chain confirms it and the catalog is rebuilt.

Invariants:
- proposal ids are dense (0..count-1) and assigned by the contract.
- executed is monotonic false → true.
- vote tallies never decrease between snapshots of the same id.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Optional


class Vote(int, enum.Enum):
    """Vote choice, encoded as the contract's enum."""
    YAY = 0
    NAY = 1

    @classmethod
    def parse(cls, raw: str) -> "Vote":
        try:
            return cls[raw.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown vote choice: {raw!r} (expected yay or nay)")


@dataclass(frozen=True)
class Proposal:
    """One proposal to purchase an NFT with treasury funds."""
    proposal_id: int
    target_token_id: int
    deadline: datetime
    yay_votes: int
    nay_votes: int
    executed: bool

    def __post_init__(self) -> None:
        if self.proposal_id < 0:
            raise ValueError(f"proposal_id must be >= 0, got {self.proposal_id}")
        if self.yay_votes < 0 or self.nay_votes < 0:
            raise ValueError(f"Proposal {self.proposal_id}: vote tallies must be >= 0")
        if self.deadline.tzinfo is None:
            raise ValueError(f"Proposal {self.proposal_id}: deadline must be timezone-aware")

    @property
    def projected_outcome(self) -> Vote:
        """Which side currently wins; ties resolve to NAY as on-chain."""
        return Vote.YAY if self.yay_votes > self.nay_votes else Vote.NAY

    @classmethod
    def from_record(cls, proposal_id: int, record: tuple) -> "Proposal":
        """Normalize a raw `proposals(id)` tuple.

        Record layout: (nftTokenId, deadline, yayVotes, nayVotes, executed),
        deadline in Unix seconds.
        """
        token_id, deadline, yay, nay, executed = record
        return cls(
            proposal_id=proposal_id,
            target_token_id=int(token_id),
            deadline=datetime.fromtimestamp(int(deadline), tz=timezone.utc),
            yay_votes=int(yay),
            nay_votes=int(nay),
            executed=bool(executed),
        )


@dataclass(frozen=True)
class Catalog:
    """All proposals as of the last completed synchronization.

    Rebuilt wholesale on every sync, never patched.
    """
    proposals: tuple[Proposal, ...] = ()
    synced_utc: Optional[datetime] = None

    def __post_init__(self) -> None:
        for index, proposal in enumerate(self.proposals):
            if proposal.proposal_id != index:
                raise ValueError(
                    f"Catalog out of order: position {index} holds "
                    f"proposal {proposal.proposal_id}"
                )

    def __len__(self) -> int:
        return len(self.proposals)

    def __iter__(self) -> Iterator[Proposal]:
        return iter(self.proposals)

    def get(self, proposal_id: int) -> Optional[Proposal]:
        if 0 <= proposal_id < len(self.proposals):
            return self.proposals[proposal_id]
        return None

    @property
    def is_empty(self) -> bool:
        return not self.proposals


EMPTY_CATALOG = Catalog()
