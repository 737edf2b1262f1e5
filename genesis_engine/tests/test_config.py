"""Tests for genesis_engine.core.config — settings loading and validation."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from genesis_engine.core.config import ETHER, Settings, get_settings
from genesis_engine.core.types import SpecId


class TestSettings:
    """Verify settings defaults and environment overrides."""

    def test_default_app_env(self):
        s = Settings(_env_file=None)
        assert s.app_env == "development"

    def test_execution_defaults(self):
        s = Settings(_env_file=None)
        assert s.chain_id == 1337
        assert s.block_gas_limit == 30_000_000
        assert s.tx_gas_limit == 2**64 - 1
        assert s.spec_id is SpecId.LATEST
        assert s.vm_backend == ""

    def test_seeding_buffers(self):
        s = Settings(_env_file=None)
        assert s.funding_buffer_wei == 10_000_000 * ETHER
        assert s.pooled_stake_buffer_wei == 1_000_000 * ETHER
        assert s.funding_buffer_wei > s.pooled_stake_buffer_wei

    def test_artifact_filenames(self):
        s = Settings(_env_file=None)
        assert s.bundle_state_filename == "bundle_state.json"
        assert s.genesis_accounts_filename == "genesis_accounts.json"
        assert s.genesis_contracts_filename == "genesis_contracts.json"

    @patch.dict(os.environ, {"GENESIS_APP_ENV": "production", "GENESIS_CHAIN_ID": "7771625"})
    def test_env_override(self):
        """Environment variables with GENESIS_ prefix override defaults."""
        s = Settings(_env_file=None)
        assert s.app_env == "production"
        assert s.chain_id == 7771625

    @patch.dict(os.environ, {"GENESIS_SPEC_ID": "cancun"})
    def test_spec_id_from_env(self):
        assert Settings(_env_file=None).spec_id is SpecId.CANCUN

    @patch.dict(os.environ, {"GENESIS_SPEC_ID": "frontier"})
    def test_unknown_spec_id_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    @patch.dict(os.environ, {"GENESIS_VM_BACKEND": "mypkg.vm:Backend"})
    def test_vm_backend_from_env(self):
        assert Settings(_env_file=None).vm_backend == "mypkg.vm:Backend"

    def test_get_settings_returns_same_instance(self):
        """get_settings is cached — same object each call."""
        get_settings.cache_clear()
        s1 = get_settings()
        s2 = get_settings()
        assert s1 is s2
