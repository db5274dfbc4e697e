# helper/codec.py
from __future__ import annotations

import struct

from pydantic import ValidationError

from replica.core.errors import MalformedMessage
from replica.core.models import Message
from replica.helper.hashing import BytesLike, keccak256, to_bytes

# Wire layout, all integers big-endian:
#
#   version(2) | origin(4) | sender(32) | nonce(4) | destination(4) | recipient(32) | body(*)
_HEADER = struct.Struct(">HI32sII32s")
HEADER_LENGTH = _HEADER.size  # 78


def encode_message(message: Message) -> bytes:
    """Canonical byte encoding of `message`; input to the leaf hash."""
    header = _HEADER.pack(
        message.version,
        message.origin_domain,
        message.sender,
        message.nonce,
        message.destination_domain,
        message.recipient,
    )
    return header + message.body


def decode_message(data: BytesLike) -> Message:
    """
    Decode the wire encoding into a Message.

    Everything after the fixed 78-byte header is the body, so
    encode_message(decode_message(b)) == b for every b this accepts.
    """
    try:
        raw = to_bytes(data)
    except ValueError as exc:
        raise MalformedMessage(f"Message is not bytes or hex: {exc}") from exc

    if len(raw) < HEADER_LENGTH:
        raise MalformedMessage(
            f"Message too short: {len(raw)} bytes, header alone is {HEADER_LENGTH}"
        )

    version, origin, sender, nonce, destination, recipient = _HEADER.unpack_from(raw)
    try:
        return Message(
            version=version,
            origin_domain=origin,
            sender=sender,
            nonce=nonce,
            destination_domain=destination,
            recipient=recipient,
            body=raw[HEADER_LENGTH:],
        )
    except ValidationError as exc:
        raise MalformedMessage(str(exc)) from exc


def message_leaf(data: BytesLike) -> bytes:
    """keccak-256 of an encoded message: its leaf / message hash."""
    return keccak256(to_bytes(data))
