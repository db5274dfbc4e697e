# src/replica/core/config.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from replica.core.models import UINT32_MAX
from replica.helper.hashing import to_bytes32

# Smallest gas grant that lets a recipient do a meaningful state change.
MIN_PROCESS_GAS = 850_000
# Smallest reserve that still covers status bookkeeping and the outcome
# event after the recipient returns.
MIN_RESERVE_GAS = 15_000
# Bytes of recipient return data captured per dispatch.
MAX_RETURN_BYTES = 256


class ReplicaConfig(BaseSettings):
    """
    Immutable construction parameters of one Replica.

    A Replica sits on `local_domain` and accepts checkpoints for exactly one
    `remote_domain`. The two gas values are validated once here; nothing
    changes them afterwards.

    Optionally a genesis checkpoint (`initial_root`, `initial_index`) can be
    seeded into a fresh ledger, as a deployment would do when it starts
    tracking a Home whose tree is already non-empty.

    Fields not passed explicitly are read from REPLICA_* environment
    variables before falling back to their defaults.
    """

    local_domain: int = Field(
        ...,
        ge=0,
        le=UINT32_MAX,
        description="Domain id of the chain this Replica delivers on.",
    )

    remote_domain: int = Field(
        ...,
        ge=0,
        le=UINT32_MAX,
        description="Domain id of the Home whose checkpoints are accepted.",
    )

    process_gas_floor: int = Field(
        default=MIN_PROCESS_GAS,
        description="Gas forwarded to the recipient on every dispatch.",
    )

    reserve_gas: int = Field(
        default=MIN_RESERVE_GAS,
        description="Gas the caller keeps back for post-dispatch bookkeeping.",
    )

    max_return_bytes: int = Field(
        default=MAX_RETURN_BYTES,
        ge=0,
        description="Cap on recipient return data recorded in the outcome.",
    )

    process_deadline: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional wall-clock seconds granted to one recipient call.",
    )

    initial_root: Optional[bytes] = None
    initial_index: Optional[int] = Field(default=None, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="REPLICA_",
        env_ignore_empty=True,
        frozen=True,
    )

    @field_validator("process_gas_floor")
    @classmethod
    def _check_process_gas(cls, v: int) -> int:
        if v < MIN_PROCESS_GAS:
            raise ValueError(f"process_gas_floor must be >= {MIN_PROCESS_GAS}, got {v}")
        return v

    @field_validator("reserve_gas")
    @classmethod
    def _check_reserve_gas(cls, v: int) -> int:
        if v < MIN_RESERVE_GAS:
            raise ValueError(f"reserve_gas must be >= {MIN_RESERVE_GAS}, got {v}")
        return v

    @field_validator("initial_root", mode="before")
    @classmethod
    def _check_initial_root(cls, v: Any) -> Optional[bytes]:
        if v is None:
            return None
        return to_bytes32(v)

    @model_validator(mode="after")
    def _check_genesis(self) -> "ReplicaConfig":
        if (self.initial_root is None) != (self.initial_index is None):
            raise ValueError("initial_root and initial_index must be set together")
        return self

    @property
    def required_gas(self) -> int:
        """Budget a caller must hold to start process()."""
        return self.process_gas_floor + self.reserve_gas

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ReplicaConfig":
        """Load from a JSON object whose keys are the field names."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: Optional[str] = None) -> "ReplicaConfig":
        """
        Load from environment variables, e.g. REPLICA_LOCAL_DOMAIN=2000.

        `prefix` replaces the default REPLICA_ prefix. Empty variables are
        treated as unset and fall back to the field defaults.
        """
        if prefix is None:
            return cls()
        return cls(_env_prefix=prefix)
