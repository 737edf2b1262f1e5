"""Consolidated state delta ("bundle") produced by a transaction batch."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from genesis_engine.core.types import checksum, to_hex_bytes, to_hex_quantity
from genesis_engine.state.world_state import AccountInfo, WorldStateView


class BundleRetention(Enum):
    """Which touched accounts survive consolidation."""

    PLAIN_STATE = "plain_state"  # drop accounts that ended where they started
    REVERTS = "reverts"          # keep them, together with revert data


class AccountStatus(Enum):
    LOADED = "loaded"            # existed before the batch
    LOADED_NOT_EXISTING = "loaded_not_existing"
    CREATED = "created"
    DESTROYED = "destroyed"


@dataclass
class StorageSlot:
    """Original vs. present value of one slot."""

    original_value: int
    present_value: int

    @property
    def is_changed(self) -> bool:
        return self.original_value != self.present_value


@dataclass
class BundleAccount:
    """Net change of one address relative to the base view.

    ``info`` is ``None`` when the account does not exist after the batch;
    ``original_info`` is ``None`` when it did not exist before.
    """

    original_info: AccountInfo | None
    info: AccountInfo | None
    storage: dict[int, StorageSlot] = field(default_factory=dict)
    status: AccountStatus = AccountStatus.LOADED

    @property
    def is_info_changed(self) -> bool:
        return self.original_info != self.info

    @property
    def changed_slots(self) -> dict[int, StorageSlot]:
        return {slot: s for slot, s in self.storage.items() if s.is_changed}

    @property
    def is_reverted_to_original(self) -> bool:
        """Touched, but nothing differs from the base view."""
        return not self.is_info_changed and not self.changed_slots

    def present_storage(self) -> dict[int, int]:
        return {slot: s.present_value for slot, s in self.storage.items()}


@dataclass
class AccountRevert:
    """What it takes to restore one address to its pre-batch state."""

    address: str
    previous_info: AccountInfo | None
    previous_storage: dict[int, int] = field(default_factory=dict)
    wipe_storage: bool = False


@dataclass
class StateDelta:
    """Per-address change set of a batch relative to its base view."""

    accounts: dict[str, BundleAccount] = field(default_factory=dict)
    contracts: dict[bytes, bytes] = field(default_factory=dict)  # code hash → code
    reverts: list[AccountRevert] = field(default_factory=list)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self.accounts

    def __len__(self) -> int:
        return len(self.accounts)

    def __iter__(self) -> Iterator[str]:
        return iter(self.accounts)

    def get(self, address: str) -> BundleAccount | None:
        return self.accounts.get(address.lower())

    def without(self, address: str) -> StateDelta:
        """Copy of the delta with one address (and its revert data) removed."""
        key = address.lower()
        return StateDelta(
            accounts={a: acct for a, acct in self.accounts.items() if a != key},
            contracts=dict(self.contracts),
            reverts=[r for r in self.reverts if r.address != key],
        )

    @property
    def state_size(self) -> int:
        return len(self.accounts)

    @property
    def reverts_size(self) -> int:
        return len(self.reverts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": {
                checksum(addr): _bundle_account_to_dict(acct)
                for addr, acct in sorted(self.accounts.items())
            },
            "contracts": {
                to_hex_bytes(code_hash): to_hex_bytes(code)
                for code_hash, code in sorted(self.contracts.items())
            },
            "reverts": [_revert_to_dict(r) for r in self.reverts],
            "state_size": self.state_size,
            "reverts_size": self.reverts_size,
        }


def info_to_dict(info: AccountInfo | None) -> dict[str, Any] | None:
    if info is None:
        return None
    return {
        "balance": to_hex_quantity(info.balance),
        "nonce": info.nonce,
        "code_hash": to_hex_bytes(info.code_hash),
        "code": to_hex_bytes(info.code) if info.code else None,
    }


def _bundle_account_to_dict(account: BundleAccount) -> dict[str, Any]:
    return {
        "info": info_to_dict(account.info),
        "original_info": info_to_dict(account.original_info),
        "storage": {
            to_hex_quantity(slot): {
                "original_value": to_hex_quantity(s.original_value),
                "present_value": to_hex_quantity(s.present_value),
            }
            for slot, s in sorted(account.storage.items())
        },
        "status": account.status.value,
    }


def _revert_to_dict(revert: AccountRevert) -> dict[str, Any]:
    return {
        "address": checksum(revert.address),
        "previous_info": info_to_dict(revert.previous_info),
        "previous_storage": {
            to_hex_quantity(slot): to_hex_quantity(value)
            for slot, value in sorted(revert.previous_storage.items())
        },
        "wipe_storage": revert.wipe_storage,
    }


def apply_delta(view: WorldStateView, delta: StateDelta) -> None:
    """Write the present values of ``delta`` into ``view``."""
    for address, account in delta.accounts.items():
        if account.info is None:
            view.remove_account(address)
            continue
        if account.status in (AccountStatus.CREATED, AccountStatus.DESTROYED):
            view.remove_account(address)
        view.insert_account_info(address, account.info)
        for slot, value in account.present_storage().items():
            view.insert_account_storage(address, slot, value)
