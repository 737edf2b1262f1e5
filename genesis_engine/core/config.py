"""Core configuration for the genesis engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from genesis_engine.core.types import SpecId

ETHER = 10**18


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GENESIS_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "Genesis Engine"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    log_file: str | None = None

    # ── Execution environment ────────────────────────────────────────────
    chain_id: int = 1337
    block_gas_limit: int = 30_000_000
    tx_gas_limit: int = 2**64 - 1
    spec_id: SpecId = SpecId.LATEST

    # External virtual machine, as "package.module:factory"
    vm_backend: str = ""

    # ── Seeding ──────────────────────────────────────────────────────────
    funding_buffer_wei: int = 10_000_000 * ETHER
    pooled_stake_buffer_wei: int = 1_000_000 * ETHER
    bytecode_suffix: str = ".hex"

    # ── Artifacts ────────────────────────────────────────────────────────
    bundle_state_filename: str = "bundle_state.json"
    genesis_accounts_filename: str = "genesis_accounts.json"
    genesis_contracts_filename: str = "genesis_contracts.json"

    # ── Diagnostics ──────────────────────────────────────────────────────
    raw_output_inline_limit: int = 256
    raw_output_preview_bytes: int = 64


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
