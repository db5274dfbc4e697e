# src/replica/core/errors.py
from __future__ import annotations

from typing import Optional

from replica.core.enums import ErrorCode


class ReplicaError(Exception):
    """
    Base class for every failure raised by the Replica.

    A raised ReplicaError always means the triggering call was aborted
    before it changed any ledger or message state.
    """

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code or self.default_code


class StaleCheckpoint(ReplicaError):
    """Checkpoint index does not advance the frontier."""
    default_code = ErrorCode.STALE_CHECKPOINT


class InvalidSignature(ReplicaError):
    """Updater signature does not verify for (remote_domain, root, index)."""
    default_code = ErrorCode.INVALID_SIGNATURE


class MalformedProof(ReplicaError):
    """Leaf, proof or index cannot be interpreted as a merkle branch."""
    default_code = ErrorCode.MALFORMED_PROOF


class MalformedMessage(ReplicaError):
    """Bytes cannot be decoded as a message, or a field is out of range."""
    default_code = ErrorCode.MALFORMED_MESSAGE


class ProofFailed(ReplicaError):
    """prove_and_process could not prove the message against a known root."""
    default_code = ErrorCode.PROOF_FAILED


class WrongDomain(ReplicaError):
    """Message is not addressed to this Replica's local domain."""
    default_code = ErrorCode.WRONG_DOMAIN


class NotProven(ReplicaError):
    """process() was called for a message whose status is not PROVEN."""
    default_code = ErrorCode.NOT_PROVEN


class AlreadyProven(ReplicaError):
    """prove() was called for a leaf that has left the UNSEEN state."""
    default_code = ErrorCode.ALREADY_PROVEN


class Reentrant(ReplicaError):
    """process() was entered while another dispatch is in flight."""
    default_code = ErrorCode.REENTRANT


class InsufficientBudget(ReplicaError):
    """Caller cannot fund process_gas_floor + reserve_gas."""
    default_code = ErrorCode.INSUFFICIENT_BUDGET


class OutOfGas(ReplicaError):
    """
    A GasMeter ran out of gas or passed its deadline.

    Raised inside recipient code; the dispatcher turns it into a failed
    delivery, so it never escapes Replica.process().
    """
    default_code = ErrorCode.OUT_OF_GAS
