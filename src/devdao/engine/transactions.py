"""Transaction lifecycle — submit, await confirmation, resynchronize.

Per-submission state machine:
    IDLE → SUBMITTED → CONFIRMED → RESYNCED   (success)
    IDLE → SUBMITTED → FAILED                 (reverted, timed out, connection lost)
    IDLE → FAILED                             (no signer, rejected at estimation)

Exactly one write is in flight at a time. The manager exposes a single
`busy` flag and rejects a second submission with TransactionInFlight;
it never queues. Nothing is mutated locally on submission: the only
effect of a successful write is the resync callback re-reading chain
state.

A timed-out or interrupted confirmation is an unknown outcome, not a
rollback. The manager then requires a resync, which runs before the
next submission. Transport errors that are not client errors surface
as ProviderUnavailable.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from devdao.chain.ports import PendingTransaction
from devdao.chain.session import ChainSession, ChainWriter
from devdao.clock import utc_now
from devdao.errors import (
    AuthorityRejected,
    DAOClientError,
    ProviderUnavailable,
    TransactionInFlight,
)
from devdao.models.proposal import Vote

logger = logging.getLogger(__name__)


class TxAction(str, enum.Enum):
    CREATE_PROPOSAL = "create_proposal"
    VOTE = "vote"
    EXECUTE = "execute"


class TxState(str, enum.Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    RESYNCED = "resynced"
    FAILED = "failed"


_TRANSITIONS: dict[TxState, set[TxState]] = {
    TxState.IDLE: {TxState.SUBMITTED, TxState.FAILED},
    TxState.SUBMITTED: {TxState.CONFIRMED, TxState.FAILED},
    TxState.CONFIRMED: {TxState.RESYNCED},
    # Terminal states
    TxState.RESYNCED: set(),
    TxState.FAILED: set(),
}


class TransitionError(Exception):
    """Raised when a transaction state transition is not allowed."""


@dataclass
class TransactionRecord:
    """One submitted action and how far it got."""
    action: TxAction
    params: dict[str, Any]
    created_utc: datetime
    state: TxState = TxState.IDLE
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    updated_utc: Optional[datetime] = None
    history: list[TxState] = field(default_factory=list)

    def advance(self, target: TxState, now: datetime) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise TransitionError(
                f"Illegal transaction transition: {self.state.value} → {target.value}"
            )
        self.history.append(self.state)
        self.state = target
        self.updated_utc = now

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]


# Called after confirmation with the confirmed action, or with None for
# a forced full resync.
ResyncCallback = Callable[[Optional[TxAction]], None]


class TransactionManager:
    """Drives create/vote/execute writes against one session.

    Usage:
        manager = TransactionManager(session, resync=service_resync)
        record = manager.vote(3, Vote.YAY)   # blocks until resynced
        record.state                         # TxState.RESYNCED

    Failures raise after the record is moved to FAILED; the record
    stays available in `history` and `last`.
    """

    def __init__(
        self,
        session: ChainSession,
        resync: ResyncCallback,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session = session
        self._resync = resync
        self._clock = clock
        self._lock = threading.Lock()
        self._resync_required = False
        self._current: Optional[TransactionRecord] = None
        self._history: list[TransactionRecord] = []

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def resync_required(self) -> bool:
        return self._resync_required

    @property
    def current(self) -> Optional[TransactionRecord]:
        return self._current

    @property
    def last(self) -> Optional[TransactionRecord]:
        return self._history[-1] if self._history else None

    @property
    def history(self) -> list[TransactionRecord]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_proposal(self, token_id: int) -> TransactionRecord:
        return self._run(
            TxAction.CREATE_PROPOSAL,
            {"token_id": token_id},
            lambda writer: writer.create_proposal(token_id),
        )

    def vote(self, proposal_id: int, choice: Vote) -> TransactionRecord:
        return self._run(
            TxAction.VOTE,
            {"proposal_id": proposal_id, "choice": choice.name},
            lambda writer: writer.vote_on_proposal(int(choice), proposal_id),
        )

    def execute(self, proposal_id: int) -> TransactionRecord:
        return self._run(
            TxAction.EXECUTE,
            {"proposal_id": proposal_id},
            lambda writer: writer.execute_proposal(proposal_id),
        )

    def force_resync(self) -> None:
        """Re-read all chain state and clear the resync requirement."""
        self._resync(None)
        self._resync_required = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _run(
        self,
        action: TxAction,
        params: dict[str, Any],
        submit: Callable[[ChainWriter], PendingTransaction],
    ) -> TransactionRecord:
        if not self._lock.acquire(blocking=False):
            logger.warning("Rejected %s: another transaction is in flight", action.value)
            raise TransactionInFlight(
                "Another transaction is still waiting for confirmation"
            )
        try:
            if self._resync_required:
                logger.info("Resynchronizing before %s after an unknown outcome", action.value)
                self.force_resync()

            record = TransactionRecord(action=action, params=params, created_utc=self._clock())
            self._history.append(record)
            self._current = record

            try:
                writer = self._session.as_writer()
                pending = submit(writer)
                record.tx_hash = pending.tx_hash
                record.advance(TxState.SUBMITTED, self._clock())
                logger.info("%s submitted: %s", action.value, pending.tx_hash)
                pending.await_confirmation()
            except Exception as exc:
                # Broadcast but unconfirmed: outcome unknown
                unknown = (
                    record.state == TxState.SUBMITTED
                    and not isinstance(exc, AuthorityRejected)
                )
                if unknown:
                    self._resync_required = True
                self._fail(record, exc)
                if isinstance(exc, DAOClientError):
                    raise
                if unknown:
                    raise ProviderUnavailable(
                        f"Lost the connection waiting for {record.tx_hash}: {exc}; "
                        f"outcome unknown, resynchronize before further action"
                    ) from exc
                raise ProviderUnavailable(f"Could not submit {action.value}: {exc}") from exc

            record.advance(TxState.CONFIRMED, self._clock())
            logger.info("%s confirmed: %s", action.value, record.tx_hash)

            try:
                self._resync(action)
            except DAOClientError:
                # Effect landed but the view is stale
                self._resync_required = True
                logger.error("Resync after %s failed; resync required", action.value)
                raise

            record.advance(TxState.RESYNCED, self._clock())
            return record
        finally:
            self._current = None
            self._lock.release()

    def _fail(self, record: TransactionRecord, exc: Exception) -> None:
        record.error = str(exc)
        record.advance(TxState.FAILED, self._clock())
        level = logging.WARNING if isinstance(exc, DAOClientError) else logging.ERROR
        logger.log(level, "%s failed: %s", record.action.value, exc)
