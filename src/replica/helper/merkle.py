# helper/merkle.py
from __future__ import annotations

from typing import List, Sequence

from replica.core.errors import MalformedProof
from replica.helper.hashing import BytesLike, keccak256, to_bytes32

# Depth of the source-chain message tree; supports up to 2**32 leaves.
TREE_DEPTH = 32
MAX_LEAVES = 2 ** TREE_DEPTH


def _zero_hashes(depth: int) -> List[bytes]:
    """
    Roots of empty subtrees, one per level.

        Z[0]   = 0x00 * 32
        Z[i+1] = H(Z[i] || Z[i])

    The source tree pads every missing right sibling with Z[level], so a
    branch for a leaf near the end of the tree carries these values.
    """
    zeros = [b"\x00" * 32]
    for _ in range(depth - 1):
        zeros.append(keccak256(zeros[-1], zeros[-1]))
    return zeros


ZERO_HASHES: List[bytes] = _zero_hashes(TREE_DEPTH)


def _normalize_branch(leaf: BytesLike, proof: Sequence[BytesLike], index: int):
    try:
        leaf_b = to_bytes32(leaf)
    except ValueError as exc:
        raise MalformedProof(f"Invalid leaf: {exc}") from exc

    if isinstance(proof, (bytes, bytearray, str)):
        raise MalformedProof("Proof must be a sequence of 32-byte hashes, not a single value")
    if len(proof) != TREE_DEPTH:
        raise MalformedProof(f"Proof must have exactly {TREE_DEPTH} elements, got {len(proof)}")

    siblings = []
    for level, sib in enumerate(proof):
        try:
            siblings.append(to_bytes32(sib))
        except ValueError as exc:
            raise MalformedProof(f"Invalid proof element at level {level}: {exc}") from exc

    if isinstance(index, bool) or not isinstance(index, int):
        raise MalformedProof(f"Index must be an integer, got {type(index).__name__}")
    if not 0 <= index < MAX_LEAVES:
        raise MalformedProof(f"Index {index} outside [0, 2**{TREE_DEPTH})")

    return leaf_b, siblings


def branch_root(leaf: BytesLike, proof: Sequence[BytesLike], index: int) -> bytes:
    """
    Recompute the root implied by `leaf`, its sibling branch and its index.

    At each level i, bit i of `index` says which side the accumulated hash
    sits on:

        h = leaf
        for i, sib in enumerate(proof):
            h = H(sib || h)  if (index >> i) & 1  else  H(h || sib)
        return h

    Unlike a sorted-pair scheme, the direction is explicit, so the same
    siblings in a different position yield a different root.

    Raises MalformedProof for anything that is not a 32-byte leaf, a
    TREE_DEPTH-long list of 32-byte siblings and an index in
    [0, 2**TREE_DEPTH).
    """
    current, siblings = _normalize_branch(leaf, proof, index)

    for level, sib in enumerate(siblings):
        if (index >> level) & 1:
            current = keccak256(sib, current)
        else:
            current = keccak256(current, sib)

    return current
