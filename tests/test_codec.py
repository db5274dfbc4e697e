"""Tests for the message wire codec and leaf hash."""

import pytest
from pydantic import ValidationError

from replica.core.errors import MalformedMessage
from replica.core.models import Message
from replica.helper.codec import HEADER_LENGTH, decode_message, encode_message, message_leaf
from replica.helper.hashing import keccak256

from conftest import RECIPIENT, SENDER


@pytest.fixture
def message():
    return Message(
        version=3,
        origin_domain=1000,
        sender=SENDER,
        nonce=42,
        destination_domain=2000,
        recipient=RECIPIENT,
        body=b"payload",
    )


class TestLayout:
    def test_header_length(self):
        assert HEADER_LENGTH == 78

    def test_field_offsets(self, message):
        raw = encode_message(message)
        assert raw[0:2] == (3).to_bytes(2, "big")
        assert raw[2:6] == (1000).to_bytes(4, "big")
        assert raw[6:38] == SENDER
        assert raw[38:42] == (42).to_bytes(4, "big")
        assert raw[42:46] == (2000).to_bytes(4, "big")
        assert raw[46:78] == RECIPIENT
        assert raw[78:] == b"payload"


class TestRoundTrip:
    def test_decode_encode(self, message):
        raw = message.encode()
        decoded = Message.decode(raw)
        assert decoded == message
        assert decoded.encode() == raw

    def test_empty_body(self, message):
        m = message.model_copy(update={"body": b""})
        raw = m.encode()
        assert len(raw) == HEADER_LENGTH
        assert decode_message(raw).body == b""

    def test_decode_hex(self, message):
        assert decode_message("0x" + message.encode().hex()) == message


class TestLeaf:
    def test_leaf_is_keccak_of_encoding(self, message):
        assert message.leaf() == keccak256(message.encode())
        assert message_leaf(message.encode()) == message.leaf()

    def test_leaf_is_stable(self, message):
        assert message.leaf() == message.leaf()
        assert Message.decode(message.encode()).leaf() == message.leaf()

    def test_leaf_depends_on_every_field(self, message):
        variants = [
            {"version": 4},
            {"origin_domain": 1001},
            {"sender": b"\x33" * 32},
            {"nonce": 43},
            {"destination_domain": 2001},
            {"recipient": b"\x44" * 32},
            {"body": b"payload!"},
        ]
        leaves = {message.model_copy(update=v).leaf() for v in variants}
        leaves.add(message.leaf())
        assert len(leaves) == len(variants) + 1


class TestValidation:
    def test_too_short(self):
        with pytest.raises(MalformedMessage, match="too short"):
            decode_message(b"\x00" * (HEADER_LENGTH - 1))

    def test_not_hex(self):
        with pytest.raises(MalformedMessage):
            decode_message("zz")

    def test_address_must_be_32_bytes(self):
        with pytest.raises(ValidationError):
            Message(origin_domain=1, sender=b"\x01" * 20, nonce=0, destination_domain=2, recipient=RECIPIENT)

    def test_hex_address_accepted(self):
        m = Message(
            origin_domain=1,
            sender="0x" + SENDER.hex(),
            nonce=0,
            destination_domain=2,
            recipient=RECIPIENT,
        )
        assert m.sender == SENDER

    @pytest.mark.parametrize("field,value", [
        ("version", 2 ** 16),
        ("origin_domain", 2 ** 32),
        ("nonce", -1),
    ])
    def test_integer_ranges(self, field, value):
        kwargs = dict(origin_domain=1, sender=SENDER, nonce=0, destination_domain=2, recipient=RECIPIENT)
        kwargs[field] = value
        with pytest.raises(ValidationError):
            Message(**kwargs)

    def test_frozen(self, message):
        with pytest.raises(ValidationError):
            message.nonce = 7
