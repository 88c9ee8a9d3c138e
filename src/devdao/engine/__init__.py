"""Decision and lifecycle engine — action gating and transaction flow."""

from devdao.engine.action_gate import Action, ActionDecision, ActionGate, GateReason
from devdao.engine.transactions import (
    TransactionManager,
    TransactionRecord,
    TxAction,
    TxState,
)

__all__ = [
    "Action",
    "ActionDecision",
    "ActionGate",
    "GateReason",
    "TransactionManager",
    "TransactionRecord",
    "TxAction",
    "TxState",
]
