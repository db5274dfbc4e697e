# src/replica/__init__.py
from __future__ import annotations

from replica.core.config import ReplicaConfig
from replica.core.enums import ErrorCode, MessageStatus
from replica.core.errors import (
    AlreadyProven,
    InsufficientBudget,
    InvalidSignature,
    MalformedMessage,
    MalformedProof,
    NotProven,
    OutOfGas,
    ProofFailed,
    Reentrant,
    ReplicaError,
    StaleCheckpoint,
    WrongDomain,
)
from replica.core.models import Checkpoint, CheckpointEvent, Message, ProcessEvent
from replica.core.state import InMemoryReplicaStore, JsonFileReplicaStore, ReplicaStore
from replica.engine.budget import GasMeter, consume
from replica.engine.dispatcher import DispatchResult, Recipient, RecipientRegistry
from replica.engine.replica import Replica
from replica.helper.crypto import (
    Ed25519UpdaterAuthority,
    HmacUpdaterAuthority,
    UpdaterAuthority,
    checkpoint_digest,
)
from replica.helper.merkle import TREE_DEPTH, branch_root

__version__ = "0.1.0"

__all__ = [
    "AlreadyProven",
    "Checkpoint",
    "CheckpointEvent",
    "DispatchResult",
    "Ed25519UpdaterAuthority",
    "ErrorCode",
    "GasMeter",
    "HmacUpdaterAuthority",
    "InMemoryReplicaStore",
    "InsufficientBudget",
    "InvalidSignature",
    "JsonFileReplicaStore",
    "MalformedMessage",
    "MalformedProof",
    "Message",
    "MessageStatus",
    "NotProven",
    "OutOfGas",
    "ProcessEvent",
    "ProofFailed",
    "Recipient",
    "RecipientRegistry",
    "Reentrant",
    "Replica",
    "ReplicaConfig",
    "ReplicaError",
    "ReplicaStore",
    "StaleCheckpoint",
    "TREE_DEPTH",
    "UpdaterAuthority",
    "WrongDomain",
    "branch_root",
    "checkpoint_digest",
    "consume",
]
