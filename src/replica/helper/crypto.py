# helper/crypto.py
from __future__ import annotations

import hashlib
import hmac
import logging
import struct
from abc import ABC, abstractmethod
from typing import Dict, Generic, Optional, TypeVar, Union

from cryptography.exceptions import InvalidSignature as _BadSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from replica.helper.hashing import BytesLike, keccak256, to_bytes, to_bytes32

logger = logging.getLogger(__name__)

# Suffix mixed into the per-domain separator so a signature for one
# remote domain can never be replayed against another.
DOMAIN_HASH_SUFFIX = b"ABACUS"

K = TypeVar("K")


def domain_hash(domain: int) -> bytes:
    """keccak(uint32(domain) || "ABACUS")."""
    return keccak256(struct.pack(">I", domain), DOMAIN_HASH_SUFFIX)


def checkpoint_digest(domain: int, root: BytesLike, index: int) -> bytes:
    """
    The 32-byte message an Updater signs for a checkpoint.

        keccak( domain_hash(domain) || root || uint256(index) )
    """
    return keccak256(domain_hash(domain), to_bytes32(root), index.to_bytes(32, "big"))


class UpdaterAuthority(ABC):
    """
    Answers one question for the checkpoint ledger: did the current Updater
    of `remote_domain` sign (remote_domain, root, index)?

    The ledger treats this as a black box. Swapping the single-signer
    implementations below for a threshold scheme does not touch the
    Replica's state machine.
    """

    @abstractmethod
    def verify_signature(
        self,
        remote_domain: int,
        root: bytes,
        index: int,
        signature: BytesLike,
    ) -> bool:
        """
        Return True iff `signature` is valid for the checkpoint under the
        key currently registered for `remote_domain`. Never raises for a
        bad or malformed signature; returns False instead.
        """
        raise NotImplementedError


class _PerDomainAuthority(UpdaterAuthority, Generic[K]):
    """
    One current key per remote domain.

    set_updater() replaces the key; signatures made with the previous key
    stop verifying immediately.
    """

    def __init__(self, keys: Optional[Dict[int, K]] = None) -> None:
        self._keys: Dict[int, K] = {}
        for domain, key in (keys or {}).items():
            self.set_updater(domain, key)

    def _coerce_key(self, key) -> K:
        return key

    def set_updater(self, domain: int, key) -> None:
        self._keys[domain] = self._coerce_key(key)
        logger.info("Updater key set for domain %d", domain)

    def updater(self, domain: int) -> Optional[K]:
        return self._keys.get(domain)

    def verify_signature(self, remote_domain, root, index, signature) -> bool:
        key = self._keys.get(remote_domain)
        if key is None:
            logger.warning("No updater registered for domain %d", remote_domain)
            return False
        try:
            sig = to_bytes(signature)
            digest = checkpoint_digest(remote_domain, root, index)
        except (ValueError, OverflowError, TypeError):
            return False
        return self._verify(key, digest, sig)

    @abstractmethod
    def _verify(self, key: K, digest: bytes, signature: bytes) -> bool:
        raise NotImplementedError


class HmacUpdaterAuthority(_PerDomainAuthority[bytes]):
    """
    Shared-secret authority: the signature is HMAC-SHA256(secret, digest).

    Symmetric keys mean whoever verifies could also sign, so this is meant
    for local networks and tests, not for bridging value.
    """

    def _coerce_key(self, key: BytesLike) -> bytes:
        if isinstance(key, str):
            return key.encode("utf-8")
        return bytes(key)

    def _verify(self, key: bytes, digest: bytes, signature: bytes) -> bool:
        expected = hmac.new(key, digest, hashlib.sha256).digest()
        return hmac.compare_digest(expected, signature)


class Ed25519UpdaterAuthority(_PerDomainAuthority[Ed25519PublicKey]):
    """
    Ed25519 authority: the Updater signs the 32-byte checkpoint digest.

    Keys may be given as Ed25519PublicKey objects, 32 raw bytes, or
    PEM-encoded SubjectPublicKeyInfo bytes.
    """

    def _coerce_key(self, key: Union[Ed25519PublicKey, bytes]) -> Ed25519PublicKey:
        if isinstance(key, Ed25519PublicKey):
            return key
        raw = bytes(key)
        if raw.startswith(b"-----BEGIN"):
            loaded = serialization.load_pem_public_key(raw)
            if not isinstance(loaded, Ed25519PublicKey):
                raise TypeError(f"Expected Ed25519 public key, got {type(loaded)}")
            return loaded
        return Ed25519PublicKey.from_public_bytes(raw)

    def _verify(self, key: Ed25519PublicKey, digest: bytes, signature: bytes) -> bool:
        try:
            key.verify(signature, digest)
            return True
        except _BadSignature:
            return False
