from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator

from replica.core.enums import EventKind
from replica.helper.hashing import to_bytes32, to_hex

UINT16_MAX = 2 ** 16 - 1
UINT32_MAX = 2 ** 32 - 1


def _address(value: Any) -> bytes:
    """Accept raw 32 bytes or a (0x-)hex string for a 32-byte address."""
    try:
        return to_bytes32(value)
    except ValueError as exc:
        raise ValueError(f"address must be 32 bytes: {exc}") from exc


# ======================================================================
# 1. Message — the unit of proof, status tracking and dispatch
# ======================================================================

class Message(BaseModel):
    """
    Cross-chain message as committed into the source-chain tree.

        m = (version, origin, sender, nonce, destination, recipient, body)

    Identity is the keccak-256 of the canonical wire encoding ("leaf").
    Messages are produced upstream; the Replica only decodes what it is
    handed and never mutates it.
    """

    version: int = Field(
        default=0,
        ge=0,
        le=UINT16_MAX,
        description="Message format version (uint16).",
    )

    origin_domain: int = Field(
        ...,
        ge=0,
        le=UINT32_MAX,
        description="Domain id of the chain the message was dispatched on.",
    )

    sender: bytes = Field(
        ...,
        description="32-byte address of the sender on the origin domain.",
    )

    nonce: int = Field(
        ...,
        ge=0,
        le=UINT32_MAX,
        description="Per-origin sequence number assigned by the source tree.",
    )

    destination_domain: int = Field(
        ...,
        ge=0,
        le=UINT32_MAX,
        description="Domain id the message must be processed on.",
    )

    recipient: bytes = Field(
        ...,
        description="32-byte address of the handling recipient.",
    )

    body: bytes = Field(
        default=b"",
        description="Opaque application payload handed to the recipient.",
    )

    class Config:
        frozen = True

    @field_validator("sender", "recipient", mode="before")
    @classmethod
    def _check_address(cls, v: Any) -> bytes:
        return _address(v)

    # ------------------------------------------------------------------
    # Codec shortcuts (implemented in helper.codec)
    # ------------------------------------------------------------------

    def encode(self) -> bytes:
        from replica.helper.codec import encode_message
        return encode_message(self)

    @classmethod
    def decode(cls, data: bytes) -> "Message":
        from replica.helper.codec import decode_message
        return decode_message(data)

    def leaf(self) -> bytes:
        """keccak-256 of the wire encoding; the message hash."""
        from replica.helper.codec import message_leaf
        return message_leaf(self.encode())


# ======================================================================
# 2. Checkpoint — signed (root, index) commitment of the source tree
# ======================================================================

class Checkpoint(BaseModel):
    """
    "The source tree had `root` when it held `index + 1` leaves."

    Checkpoints are ordered by index only; roots carry no ordering.
    """

    root: bytes
    index: int = Field(..., ge=0)

    class Config:
        frozen = True

    @field_validator("root", mode="before")
    @classmethod
    def _check_root(cls, v: Any) -> bytes:
        return to_bytes32(v)


# ======================================================================
# 3. Events — durable records of accepted checkpoints and dispatches
# ======================================================================

class CheckpointEvent(BaseModel):
    kind: EventKind = EventKind.CHECKPOINT
    root: bytes
    index: int

    class Config:
        frozen = True


class ProcessEvent(BaseModel):
    """
    Outcome of one dispatch attempt.

    success=False covers every recipient failure (exception, exhausted
    budget, unknown recipient). return_data is already capped by the
    dispatcher.
    """

    kind: EventKind = EventKind.PROCESS
    message_hash: bytes
    success: bool
    return_data: bytes = b""

    class Config:
        frozen = True


Event = Union[CheckpointEvent, ProcessEvent]


def event_to_json(event: Event) -> dict:
    """Serialize an event with bytes fields rendered as 0x-hex."""
    data = event.model_dump(mode="python")
    for key, value in list(data.items()):
        if isinstance(value, bytes):
            data[key] = to_hex(value)
        elif isinstance(value, EventKind):
            data[key] = value.value
    return data


def event_from_json(data: dict) -> Event:
    kind = EventKind(data["kind"])
    if kind is EventKind.CHECKPOINT:
        return CheckpointEvent(
            root=to_bytes32(data["root"]),
            index=int(data["index"]),
        )
    return ProcessEvent(
        message_hash=to_bytes32(data["message_hash"]),
        success=bool(data["success"]),
        return_data=bytes.fromhex(data["return_data"][2:]),
    )


def describe(value: Optional[bytes]) -> str:
    """Short hex rendering for log lines."""
    if value is None:
        return "None"
    h = bytes(value).hex()
    return "0x" + (h if len(h) <= 16 else h[:8] + ".." + h[-8:])
