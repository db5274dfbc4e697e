from __future__ import annotations

import logging
from typing import Optional

from replica.core.errors import InvalidSignature, MalformedProof, StaleCheckpoint
from replica.core.models import Checkpoint, CheckpointEvent, describe
from replica.core.state import ReplicaStore
from replica.helper.crypto import UpdaterAuthority
from replica.helper.hashing import BytesLike, to_bytes32

logger = logging.getLogger(__name__)


class CheckpointLedger:
    """
    Signed (root -> index) commitments from the single Updater of
    `remote_domain`.

    The frontier (highest accepted index) must strictly increase, which
    stops a stale or replayed checkpoint from rolling the ledger back.
    Every root ever accepted stays known, so a proof generated against an
    older checkpoint remains usable after the frontier moves on.
    """

    def __init__(
        self,
        remote_domain: int,
        authority: UpdaterAuthority,
        store: ReplicaStore,
    ) -> None:
        self.remote_domain = remote_domain
        self.authority = authority
        self.store = store

    @property
    def frontier(self) -> Optional[int]:
        return self.store.frontier

    def checkpoint(self, root: BytesLike, index: int, signature: BytesLike) -> CheckpointEvent:
        """
        Accept a new checkpoint.

        Raises:
            StaleCheckpoint:  index <= frontier.
            InvalidSignature: the authority rejects the signature.
            MalformedProof:   root is not 32 bytes or index is negative.

        Either all of (root recorded, frontier advanced, event appended)
        happen or none does.
        """
        try:
            root_b = to_bytes32(root)
        except ValueError as exc:
            raise MalformedProof(f"Invalid checkpoint root: {exc}") from exc
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise MalformedProof(f"Invalid checkpoint index: {index!r}")

        frontier = self.frontier
        if frontier is not None and index <= frontier:
            logger.warning(
                "Rejected stale checkpoint root=%s index=%d (frontier=%d)",
                describe(root_b), index, frontier,
            )
            raise StaleCheckpoint(f"Checkpoint index {index} is not newer than {frontier}")

        if not self.authority.verify_signature(self.remote_domain, root_b, index, signature):
            logger.warning(
                "Rejected checkpoint root=%s index=%d: bad updater signature",
                describe(root_b), index,
            )
            raise InvalidSignature(
                f"Signature does not verify for domain {self.remote_domain}, index {index}"
            )

        self.store.record_checkpoint(root_b, index)
        event = CheckpointEvent(root=root_b, index=index)
        self.store.append_event(event)
        logger.info("Checkpoint accepted root=%s index=%d", describe(root_b), index)
        return event

    def seed(self, root: BytesLike, index: int) -> None:
        """
        Record a genesis checkpoint without a signature.

        Only valid on an empty ledger; used when a Replica is configured
        with an initial root.
        """
        if self.frontier is not None:
            raise ValueError("Ledger already has checkpoints")
        self.store.record_checkpoint(to_bytes32(root), index)
        logger.info("Seeded genesis checkpoint index=%d", index)

    def is_known(self, root: BytesLike) -> bool:
        try:
            return self.store.checkpoint_index(to_bytes32(root)) is not None
        except ValueError:
            return False

    def checkpoint_index(self, root: BytesLike) -> Optional[int]:
        return self.store.checkpoint_index(to_bytes32(root))

    def latest_checkpoint(self) -> Optional[Checkpoint]:
        return self.store.latest_checkpoint()
