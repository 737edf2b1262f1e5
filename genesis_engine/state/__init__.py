"""Account ledger staging area and the state delta derived from it."""

from genesis_engine.state.bundle import (
    AccountRevert,
    AccountStatus,
    BundleAccount,
    BundleRetention,
    StateDelta,
    StorageSlot,
    apply_delta,
)
from genesis_engine.state.world_state import Account, AccountInfo, StateReader, WorldStateView

__all__ = [
    "Account",
    "AccountInfo",
    "AccountRevert",
    "AccountStatus",
    "BundleAccount",
    "BundleRetention",
    "StateDelta",
    "StateReader",
    "StorageSlot",
    "WorldStateView",
    "apply_delta",
]
