"""Proposal reader — normalizes raw contract reads into model values.

Every read is idempotent and side-effect free. Failures of the
underlying chain call are wrapped in ChainReadError (original exception
chained) so callers can retry without anything to roll back.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from devdao.chain.session import ChainReader
from devdao.errors import ChainReadError, DAOClientError, NotFound
from devdao.models.proposal import Proposal

logger = logging.getLogger(__name__)


class ProposalReader:
    """Reads proposals, balances and the proposal count through a session."""

    def __init__(self, chain: ChainReader) -> None:
        self._chain = chain

    def read_proposal(self, proposal_id: int) -> Proposal:
        """Fetch one proposal snapshot.

        Raises:
            NotFound: negative id, or no proposal at that id.
            ChainReadError: the chain read failed.
        """
        if proposal_id < 0:
            raise NotFound(proposal_id)
        record = self._read(f"proposal {proposal_id}", self._chain.proposal_by_id, proposal_id)
        try:
            # Unset mapping entries come back zeroed
            if int(record[1]) == 0:
                raise NotFound(proposal_id)
            return Proposal.from_record(proposal_id, record)
        except (TypeError, ValueError, IndexError) as exc:
            raise ChainReadError(f"Malformed record for proposal {proposal_id}: {exc}") from exc

    def read_treasury_balance(self) -> int:
        """Treasury balance in wei."""
        return int(self._read("treasury balance", self._chain.treasury_balance))

    def read_caller_balance(self, address: str) -> int:
        """Membership NFTs held by `address`, i.e. its voting weight."""
        return int(self._read(f"NFT balance of {address}", self._chain.balance_of, address))

    def read_proposal_count(self) -> int:
        return int(self._read("proposal count", self._chain.proposal_count))

    def _read(self, what: str, call: Callable[..., Any], *args: Any) -> Any:
        try:
            return call(*args)
        except DAOClientError:
            raise
        except Exception as exc:
            logger.error("Reading %s failed: %s", what, exc)
            raise ChainReadError(f"Reading {what} failed: {exc}") from exc
