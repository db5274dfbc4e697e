"""Tests for ReplicaConfig validation and loading."""

import json

import pytest
from pydantic import ValidationError

from replica.core.config import MAX_RETURN_BYTES, MIN_PROCESS_GAS, MIN_RESERVE_GAS, ReplicaConfig


class TestValidation:
    def test_defaults(self):
        config = ReplicaConfig(local_domain=1, remote_domain=2)
        assert config.process_gas_floor == MIN_PROCESS_GAS
        assert config.reserve_gas == MIN_RESERVE_GAS
        assert config.max_return_bytes == MAX_RETURN_BYTES == 256
        assert config.required_gas == MIN_PROCESS_GAS + MIN_RESERVE_GAS

    def test_process_gas_floor_minimum(self):
        with pytest.raises(ValidationError, match="process_gas_floor"):
            ReplicaConfig(local_domain=1, remote_domain=2, process_gas_floor=MIN_PROCESS_GAS - 1)

    def test_reserve_gas_minimum(self):
        with pytest.raises(ValidationError, match="reserve_gas"):
            ReplicaConfig(local_domain=1, remote_domain=2, reserve_gas=MIN_RESERVE_GAS - 1)

    def test_domain_range(self):
        with pytest.raises(ValidationError):
            ReplicaConfig(local_domain=2 ** 32, remote_domain=2)

    def test_genesis_needs_both_fields(self):
        with pytest.raises(ValidationError, match="together"):
            ReplicaConfig(local_domain=1, remote_domain=2, initial_root=b"\x01" * 32)

    def test_genesis_root_hex(self):
        config = ReplicaConfig(
            local_domain=1,
            remote_domain=2,
            initial_root="0x" + "ab" * 32,
            initial_index=0,
        )
        assert config.initial_root == b"\xab" * 32

    def test_immutable(self):
        config = ReplicaConfig(local_domain=1, remote_domain=2)
        with pytest.raises(ValidationError):
            config.reserve_gas = 1_000_000


class TestLoading:
    def test_from_file(self, tmp_path):
        path = tmp_path / "replica.json"
        path.write_text(json.dumps({
            "local_domain": 2000,
            "remote_domain": 1000,
            "reserve_gas": 20_000,
        }))
        config = ReplicaConfig.from_file(path)
        assert (config.local_domain, config.remote_domain, config.reserve_gas) == (2000, 1000, 20_000)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REPLICA_LOCAL_DOMAIN", "2000")
        monkeypatch.setenv("REPLICA_REMOTE_DOMAIN", "1000")
        monkeypatch.setenv("REPLICA_PROCESS_DEADLINE", "2.5")
        monkeypatch.setenv("REPLICA_MAX_RETURN_BYTES", "")
        monkeypatch.setenv("UNRELATED", "x")
        config = ReplicaConfig.from_env()
        assert config.local_domain == 2000
        assert config.process_deadline == 2.5
        assert config.max_return_bytes == MAX_RETURN_BYTES

    def test_from_env_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("DST_LOCAL_DOMAIN", "7")
        monkeypatch.setenv("DST_REMOTE_DOMAIN", "8")
        config = ReplicaConfig.from_env(prefix="DST_")
        assert (config.local_domain, config.remote_domain) == (7, 8)

    def test_from_env_genesis_hex(self, monkeypatch):
        monkeypatch.setenv("REPLICA_LOCAL_DOMAIN", "2000")
        monkeypatch.setenv("REPLICA_REMOTE_DOMAIN", "1000")
        monkeypatch.setenv("REPLICA_INITIAL_ROOT", "0x" + "cd" * 32)
        monkeypatch.setenv("REPLICA_INITIAL_INDEX", "5")
        config = ReplicaConfig.from_env()
        assert config.initial_root == b"\xcd" * 32
        assert config.initial_index == 5

    def test_explicit_values_win_over_env(self, monkeypatch):
        monkeypatch.setenv("REPLICA_RESERVE_GAS", "50000")
        config = ReplicaConfig(local_domain=1, remote_domain=2, reserve_gas=20_000)
        assert config.reserve_gas == 20_000
        assert ReplicaConfig(local_domain=1, remote_domain=2).reserve_gas == 50_000

    def test_from_env_invalid(self, monkeypatch):
        monkeypatch.setenv("REPLICA_LOCAL_DOMAIN", "2000")
        monkeypatch.setenv("REPLICA_REMOTE_DOMAIN", "1000")
        monkeypatch.setenv("REPLICA_RESERVE_GAS", "10")
        with pytest.raises(ValidationError):
            ReplicaConfig.from_env()
