# src/replica/engine/budget.py
from __future__ import annotations

import contextvars
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from replica.core.errors import OutOfGas

_current: contextvars.ContextVar[Optional["GasMeter"]] = contextvars.ContextVar(
    "replica_gas_meter", default=None
)


class GasMeter:
    """
    Metered computation budget.

    Work is charged explicitly with consume(). A child meter created with
    child(limit) charges both itself and every ancestor, so a caller that
    forwards `limit` to a callee can never lose more than `limit`.

    An optional deadline (seconds, measured from creation) is checked on
    every consume(). Enforcement is cooperative: code that never calls
    consume() is not interrupted, it just cannot do metered work.

    Exhaustion raises OutOfGas, pins the meter at its limit and sets
    `tripped`, so a callee that catches the exception can neither keep
    spending nor hide that it ran out.
    """

    def __init__(
        self,
        limit: int,
        *,
        deadline: Optional[float] = None,
        parent: Optional["GasMeter"] = None,
    ) -> None:
        if limit < 0:
            raise ValueError(f"Gas limit must be non-negative, got {limit}")
        self.limit = limit
        self.used = 0
        self.tripped = False
        self.parent = parent
        self._expires_at = time.monotonic() + deadline if deadline is not None else None

    @property
    def remaining(self) -> int:
        return self.limit - self.used

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() > self._expires_at

    def consume(self, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Cannot consume negative gas: {amount}")

        if self.expired:
            self._trip()
            raise OutOfGas("Deadline exceeded")

        left = self.remaining
        if amount > left:
            self._trip()
            raise OutOfGas(f"Out of gas: wanted {amount}, {left} left")

        self._charge(amount)

    def _trip(self) -> None:
        self.tripped = True
        self._charge(self.remaining)

    def _charge(self, amount: int) -> None:
        self.used += amount
        if self.parent is not None:
            self.parent._charge(amount)

    def child(self, limit: int, *, deadline: Optional[float] = None) -> "GasMeter":
        if limit > self.remaining:
            raise ValueError(f"Child limit {limit} exceeds remaining {self.remaining}")
        return GasMeter(limit, deadline=deadline, parent=self)

    def __repr__(self) -> str:
        return f"GasMeter(limit={self.limit}, used={self.used})"


@contextmanager
def metered(meter: GasMeter) -> Iterator[GasMeter]:
    """Install `meter` as the current meter for the duration of the block."""
    token = _current.set(meter)
    try:
        yield meter
    finally:
        _current.reset(token)


def current_meter() -> Optional[GasMeter]:
    return _current.get()


def consume(amount: int) -> None:
    """
    Charge `amount` to the current meter.

    Recipient code calls this for each unit of work. Outside of a
    dispatch there is no meter and the call is a no-op.
    """
    meter = _current.get()
    if meter is not None:
        meter.consume(amount)
