import hashlib
import hmac

import pytest

from replica.core.config import ReplicaConfig
from replica.core.models import Message
from replica.engine.budget import consume
from replica.engine.dispatcher import Recipient, RecipientRegistry
from replica.engine.replica import Replica
from replica.helper.crypto import HmacUpdaterAuthority, checkpoint_digest

from source_tree import SourceTree

LOCAL_DOMAIN = 2000
REMOTE_DOMAIN = 1000
UPDATER_SECRET = b"updater-secret"

SENDER = b"\x11" * 32
RECIPIENT = b"\x22" * 32


def sign(root: bytes, index: int, secret: bytes = UPDATER_SECRET, domain: int = REMOTE_DOMAIN) -> bytes:
    """HMAC updater signature over a checkpoint."""
    return hmac.new(secret, checkpoint_digest(domain, root, index), hashlib.sha256).digest()


# ===========================================================================
# Recipients
# ===========================================================================


class EchoRecipient(Recipient):
    """Records every call and returns b"ok:" + body."""

    def __init__(self, cost: int = 1_000) -> None:
        self.calls = []
        self.cost = cost

    def handle(self, origin, sender, body):
        consume(self.cost)
        self.calls.append((origin, sender, body))
        return b"ok:" + body


class RevertingRecipient(Recipient):
    def __init__(self, reason: str = "boom") -> None:
        self.reason = reason
        self.calls = 0

    def handle(self, origin, sender, body):
        self.calls += 1
        raise RuntimeError(self.reason)


class GasHogRecipient(Recipient):
    """Burns gas until the forwarded allotment runs out."""

    def __init__(self) -> None:
        self.calls = 0

    def handle(self, origin, sender, body):
        self.calls += 1
        while True:
            consume(10_000)


class LoudRecipient(Recipient):
    """Returns far more data than the dispatcher records."""

    def handle(self, origin, sender, body):
        return b"x" * 10_000


# ===========================================================================
# Fixtures
# ===========================================================================


@pytest.fixture
def config():
    return ReplicaConfig(local_domain=LOCAL_DOMAIN, remote_domain=REMOTE_DOMAIN)


@pytest.fixture
def authority():
    return HmacUpdaterAuthority({REMOTE_DOMAIN: UPDATER_SECRET})


@pytest.fixture
def recipients():
    return RecipientRegistry()


@pytest.fixture
def echo(recipients):
    r = EchoRecipient()
    recipients.register(RECIPIENT, r)
    return r


@pytest.fixture
def replica(config, authority, recipients):
    return Replica(config, authority, recipients=recipients)


@pytest.fixture
def tree():
    return SourceTree()


@pytest.fixture
def make_message():
    def _make(
        nonce: int = 0,
        body: bytes = b"hello",
        recipient: bytes = RECIPIENT,
        destination: int = LOCAL_DOMAIN,
    ) -> Message:
        return Message(
            origin_domain=REMOTE_DOMAIN,
            sender=SENDER,
            nonce=nonce,
            destination_domain=destination,
            recipient=recipient,
            body=body,
        )

    return _make


@pytest.fixture
def committed(replica, tree, make_message):
    """
    Put `filler` messages plus `message` into the tree, checkpoint the
    resulting root and return (encoded message, proof, index).
    """

    def _commit(message=None, filler: int = 0):
        for i in range(filler):
            tree.insert(make_message(nonce=1_000 + i, body=b"filler").leaf())
        message = message or make_message(nonce=tree.count)
        index = tree.insert(message.leaf())
        root = tree.root()
        replica.checkpoint(root, index, sign(root, index))
        return message.encode(), tree.proof(index), index

    return _commit
