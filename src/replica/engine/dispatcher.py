from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from replica.core.config import ReplicaConfig
from replica.core.errors import InsufficientBudget, OutOfGas
from replica.core.models import Message, describe
from replica.engine.budget import GasMeter, metered
from replica.helper.hashing import BytesLike, to_bytes32

logger = logging.getLogger(__name__)


class Recipient(ABC):
    """
    End-recipient of cross-chain messages on the local domain.

    handle() is arbitrary application code: it may raise, may try to call
    back into the Replica, and may try to run forever. It should charge its
    work with replica.engine.budget.consume(); once the forwarded budget is
    gone, consume() raises OutOfGas and the dispatch is recorded as failed.
    """

    @abstractmethod
    def handle(self, origin: int, sender: bytes, body: bytes) -> Optional[bytes]:
        raise NotImplementedError


class RecipientRegistry:
    """
    32-byte address -> Recipient.

    Stands in for the local chain's address space: the dispatcher resolves
    `message.recipient` here.
    """

    def __init__(self) -> None:
        self._recipients: Dict[bytes, Recipient] = {}

    def register(self, address: BytesLike, recipient: Recipient) -> None:
        self._recipients[to_bytes32(address)] = recipient

    def unregister(self, address: BytesLike) -> None:
        self._recipients.pop(to_bytes32(address), None)

    def get(self, address: BytesLike) -> Optional[Recipient]:
        return self._recipients.get(to_bytes32(address))


class DispatchResult(BaseModel):
    """
    Outcome of one bounded recipient invocation.

    success:     handle() returned normally within its budget.
    return_data: first `max_return_bytes` of the return value, or of the
                 error text when handle() raised; empty on exhaustion.
    gas_used:    gas the recipient charged against its allotment.
    """

    success: bool
    return_data: bytes = b""
    gas_used: int = Field(default=0, ge=0)


def _as_bytes(value: Any, limit: int) -> bytes:
    """First `limit` bytes of `value`, converting no more than needed."""
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value[:limit])
    if not isinstance(value, str):
        value = str(value)
    return value[:limit].encode("utf-8")[:limit]


class Dispatcher:
    """
    Invokes recipients under a hard gas ceiling with failure isolation.

    The caller must hold process_gas_floor + reserve_gas. Only
    process_gas_floor is forwarded to the recipient, so at least
    reserve_gas is still available afterwards for bookkeeping, however
    badly the recipient behaves.

    Nothing the recipient does (raise, exhaust its gas, overrun the
    deadline, return something unprintable) escapes dispatch(): it all
    becomes a DispatchResult. KeyboardInterrupt is the one exception
    passed through.
    """

    def __init__(self, config: ReplicaConfig, recipients: RecipientRegistry) -> None:
        self.config = config
        self.recipients = recipients

    def check_budget(self, caller: GasMeter) -> None:
        required = self.config.required_gas
        if caller.remaining < required:
            raise InsufficientBudget(
                f"Caller holds {caller.remaining} gas, process needs {required}"
            )

    def _capture(self, value: Any) -> bytes:
        try:
            return _as_bytes(value, self.config.max_return_bytes)
        except KeyboardInterrupt:
            raise
        except BaseException as exc:
            logger.warning(
                "Recipient output could not be converted (%s); recording empty data",
                type(exc).__name__,
            )
            return b""

    def dispatch(self, message: Message, caller: GasMeter) -> DispatchResult:
        self.check_budget(caller)

        recipient = self.recipients.get(message.recipient)
        if recipient is None:
            logger.warning("No recipient registered at %s", describe(message.recipient))
            return DispatchResult(success=False)

        allotment = caller.child(
            self.config.process_gas_floor,
            deadline=self.config.process_deadline,
        )

        try:
            with metered(allotment):
                returned = recipient.handle(
                    message.origin_domain,
                    message.sender,
                    message.body,
                )
        except OutOfGas:
            logger.warning("Recipient %s exhausted its budget", describe(message.recipient))
            return DispatchResult(success=False, gas_used=allotment.used)
        except KeyboardInterrupt:
            raise
        except BaseException as exc:
            logger.warning(
                "Recipient %s failed: %s", describe(message.recipient), type(exc).__name__
            )
            return DispatchResult(
                success=False,
                return_data=self._capture(exc),
                gas_used=allotment.used,
            )

        if allotment.tripped:
            logger.warning(
                "Recipient %s swallowed OutOfGas; recording failure", describe(message.recipient)
            )
            return DispatchResult(success=False, gas_used=allotment.used)

        if allotment.expired:
            logger.warning(
                "Recipient %s overran its %ss deadline; recording failure",
                describe(message.recipient), self.config.process_deadline,
            )
            return DispatchResult(success=False, gas_used=allotment.used)

        return DispatchResult(
            success=True,
            return_data=self._capture(returned),
            gas_used=allotment.used,
        )
