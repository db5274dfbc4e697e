# src/replica/core/enums.py
from __future__ import annotations

from enum import Enum


class MessageStatus(str, Enum):
    """
    Per-leaf delivery status tracked by the Replica.

    The only legal transitions are

        UNSEEN -> PROVEN -> PROCESSED

    and none of them is ever reversed. PROCESSED is terminal regardless of
    whether the dispatch attempt succeeded.
    """
    UNSEEN = "unseen"
    PROVEN = "proven"
    PROCESSED = "processed"

    def can_advance_to(self, target: "MessageStatus") -> bool:
        return _NEXT.get(self) is target


_NEXT = {
    MessageStatus.UNSEEN: MessageStatus.PROVEN,
    MessageStatus.PROVEN: MessageStatus.PROCESSED,
}


class ErrorCode(str, Enum):
    """
    Reason codes carried by every ReplicaError.

    Verification and bookkeeping failures abort the call that raised them.
    The two soft outcomes (a proof that matches no known root, a recipient
    that fails during dispatch) are not errors and have no code here.
    """

    INTERNAL_ERROR = "InternalError"

    # ---- Checkpoint ledger ----
    STALE_CHECKPOINT = "StaleCheckpoint"
    INVALID_SIGNATURE = "InvalidSignature"

    # ---- Proof / codec ----
    MALFORMED_PROOF = "MalformedProof"
    MALFORMED_MESSAGE = "MalformedMessage"
    PROOF_FAILED = "ProofFailed"

    # ---- Message state machine ----
    WRONG_DOMAIN = "WrongDomain"
    NOT_PROVEN = "NotProven"
    ALREADY_PROVEN = "AlreadyProven"
    REENTRANT = "Reentrant"

    # ---- Budget ----
    INSUFFICIENT_BUDGET = "InsufficientBudget"
    OUT_OF_GAS = "OutOfGas"


class EventKind(str, Enum):
    """Kinds of records appended to the Replica's event log."""
    CHECKPOINT = "checkpoint"
    PROCESS = "process"
