from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

from replica.core.config import ReplicaConfig
from replica.core.enums import MessageStatus
from replica.core.errors import (
    AlreadyProven,
    MalformedProof,
    NotProven,
    ProofFailed,
    Reentrant,
    WrongDomain,
)
from replica.core.models import Checkpoint, CheckpointEvent, Event, Message, ProcessEvent, describe
from replica.core.state import InMemoryReplicaStore, ReplicaStore
from replica.engine.budget import GasMeter
from replica.engine.dispatcher import Dispatcher, DispatchResult, RecipientRegistry
from replica.engine.ledger import CheckpointLedger
from replica.helper.codec import decode_message, message_leaf
from replica.helper.crypto import UpdaterAuthority
from replica.helper.hashing import BytesLike, to_bytes32
from replica.helper.merkle import branch_root

logger = logging.getLogger(__name__)


class Replica:
    """
    Destination-side endpoint for messages from one remote Home.

    -------------------------------------------------------------------------
    1. Flow
    -------------------------------------------------------------------------

        Updater ─ checkpoint(root, index, sig) ─► ledger
        caller  ─ prove(leaf, proof, index) ────► branch_root ► is_known
                                                  UNSEEN ► PROVEN
        caller  ─ process(message) ─────────────► PROVEN ► PROCESSED
                                                  dispatch ► ProcessEvent

    -------------------------------------------------------------------------
    2. Failure semantics
    -------------------------------------------------------------------------

    - Every ReplicaError aborts the call before any state is written.
    - prove() returns False (no error) for a proof that matches no known
      root: the checkpoint it was built against may simply not be
      submitted yet.
    - A recipient failure is recorded as success=False; process() itself
      still completes and the message stays PROCESSED. There is no retry.

    -------------------------------------------------------------------------
    3. Concurrency
    -------------------------------------------------------------------------

    Entry points run under one per-instance RLock, so calls from other
    threads are serialized. A recipient calling back into the Replica on the
    dispatching thread passes the lock; process() then hits the single-slot
    guard and raises Reentrant. prove() and the read accessors stay usable
    from inside a recipient.
    """

    def __init__(
        self,
        config: ReplicaConfig,
        authority: UpdaterAuthority,
        *,
        recipients: Optional[RecipientRegistry] = None,
        store: Optional[ReplicaStore] = None,
    ) -> None:
        self.config = config
        self.store = store if store is not None else InMemoryReplicaStore()
        self.recipients = recipients if recipients is not None else RecipientRegistry()
        self.ledger = CheckpointLedger(config.remote_domain, authority, self.store)
        self.dispatcher = Dispatcher(config, self.recipients)

        self._lock = threading.RLock()
        self._entered = False

        if config.initial_root is not None and self.ledger.frontier is None:
            self.ledger.seed(config.initial_root, config.initial_index)

    @property
    def local_domain(self) -> int:
        return self.config.local_domain

    @property
    def remote_domain(self) -> int:
        return self.config.remote_domain

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    def checkpoint(self, root: BytesLike, index: int, signature: BytesLike) -> CheckpointEvent:
        with self._lock:
            return self.ledger.checkpoint(root, index, signature)

    def is_known(self, root: BytesLike) -> bool:
        with self._lock:
            return self.ledger.is_known(root)

    def latest_checkpoint(self) -> Optional[Checkpoint]:
        with self._lock:
            return self.ledger.latest_checkpoint()

    # ------------------------------------------------------------------
    # Proof state machine
    # ------------------------------------------------------------------

    def message_status(self, leaf: BytesLike) -> MessageStatus:
        with self._lock:
            return self.store.message_status(to_bytes32(leaf))

    def prove(self, leaf: BytesLike, proof: Sequence[BytesLike], index: int) -> bool:
        """
        Mark `leaf` PROVEN if its branch leads to an accepted root.

        Returns False, changing nothing, when the computed root is unknown.
        Raises AlreadyProven if the leaf has left UNSEEN, MalformedProof if
        the branch cannot be interpreted.
        """
        with self._lock:
            try:
                leaf_b = to_bytes32(leaf)
            except ValueError as exc:
                raise MalformedProof(f"Invalid leaf: {exc}") from exc

            status = self.store.message_status(leaf_b)
            if status is not MessageStatus.UNSEEN:
                raise AlreadyProven(f"Leaf {describe(leaf_b)} is already {status.value}")

            root = branch_root(leaf_b, proof, index)
            if not self.ledger.is_known(root):
                logger.debug(
                    "Proof for %s at index %d leads to unknown root %s",
                    describe(leaf_b), index, describe(root),
                )
                return False

            self.store.set_message_status(leaf_b, MessageStatus.PROVEN)
            logger.debug("Proved %s against root %s", describe(leaf_b), describe(root))
            return True

    def process(self, message: BytesLike, budget: Optional[GasMeter] = None) -> bool:
        """
        Dispatch a PROVEN message to its recipient, at most once.

        `budget` is the caller's gas; it must hold at least
        process_gas_floor + reserve_gas. When omitted, the caller is funded
        with exactly that amount.

        Returns the dispatch success flag. Raises Reentrant, WrongDomain,
        NotProven, InsufficientBudget or MalformedMessage, in every case
        before any state is written.
        """
        with self._lock:
            if self._entered:
                raise Reentrant("process() is already dispatching a message")

            decoded: Message = decode_message(message)
            leaf = message_leaf(decoded.encode())

            if decoded.destination_domain != self.local_domain:
                raise WrongDomain(
                    f"Message is for domain {decoded.destination_domain}, "
                    f"this replica is {self.local_domain}"
                )

            status = self.store.message_status(leaf)
            if status is not MessageStatus.PROVEN:
                raise NotProven(f"Message {describe(leaf)} is {status.value}, not proven")

            caller = budget if budget is not None else GasMeter(self.config.required_gas)
            self.dispatcher.check_budget(caller)

            self.store.set_message_status(leaf, MessageStatus.PROCESSED)

            # PROCESSED is never left without its outcome event, even when
            # dispatch is interrupted.
            result = DispatchResult(success=False)
            self._entered = True
            try:
                result = self.dispatcher.dispatch(decoded, caller)
            finally:
                self._entered = False
                self.store.append_event(
                    ProcessEvent(
                        message_hash=leaf,
                        success=result.success,
                        return_data=result.return_data,
                    )
                )
                logger.info(
                    "Processed %s success=%s gas_used=%d return_bytes=%d",
                    describe(leaf), result.success, result.gas_used, len(result.return_data),
                )
            return result.success

    def prove_and_process(
        self,
        message: BytesLike,
        proof: Sequence[BytesLike],
        index: int,
        budget: Optional[GasMeter] = None,
    ) -> bool:
        with self._lock:
            raw = decode_message(message).encode()
            if not self.prove(message_leaf(raw), proof, index):
                raise ProofFailed(f"Proof at index {index} does not match any known root")
            return self.process(raw, budget)

    # ------------------------------------------------------------------
    # Audit trail
    # ------------------------------------------------------------------

    def events(self) -> List[Event]:
        with self._lock:
            return self.store.events()
