"""In-memory account ledger used as the staging area for one run."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterator, Protocol, runtime_checkable

from genesis_engine.core.types import KECCAK_EMPTY, keccak256, parse_address


@dataclass(frozen=True)
class AccountInfo:
    """Balance, nonce and (optional) code of one account."""

    balance: int = 0
    nonce: int = 0
    code: bytes | None = None

    @property
    def code_hash(self) -> bytes:
        return keccak256(self.code) if self.code else KECCAK_EMPTY

    @property
    def has_code(self) -> bool:
        return bool(self.code)

    @property
    def is_empty(self) -> bool:
        return self.balance == 0 and self.nonce == 0 and not self.code

    def with_balance(self, balance: int) -> AccountInfo:
        return replace(self, balance=balance)


@dataclass
class Account:
    """An account record: info plus slot storage."""

    info: AccountInfo = field(default_factory=AccountInfo)
    storage: dict[int, int] = field(default_factory=dict)

    def copy(self) -> Account:
        return Account(info=self.info, storage=dict(self.storage))


@runtime_checkable
class StateReader(Protocol):
    """Read-only view of accounts, as consumed by the virtual machine."""

    def basic(self, address: str) -> AccountInfo | None:
        """Account info, or ``None`` if the account does not exist."""
        ...

    def storage(self, address: str, slot: int) -> int:
        """Slot value; absent slots read as zero."""
        ...


class WorldStateView:
    """Mutable in-memory ledger keyed by address.

    Missing accounts read as empty (zero balance, no code, empty storage).
    The view is never persisted directly; snapshots are derived from it.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}

    # ── Reads ───────────────────────────────────────────────────────────

    def basic(self, address: str) -> AccountInfo | None:
        account = self._accounts.get(parse_address(address))
        return account.info if account else None

    def storage(self, address: str, slot: int) -> int:
        account = self._accounts.get(parse_address(address))
        if account is None:
            return 0
        return account.storage.get(slot, 0)

    def account(self, address: str) -> Account:
        """Copy of the account record, empty if absent."""
        account = self._accounts.get(parse_address(address))
        return account.copy() if account else Account()

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and parse_address(address) in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[str]:
        return iter(self._accounts)

    def addresses(self) -> list[str]:
        return list(self._accounts)

    # ── Seeding / writes ────────────────────────────────────────────────

    def insert_account_info(self, address: str, info: AccountInfo) -> None:
        """Set account info, keeping any storage already present."""
        key = parse_address(address)
        existing = self._accounts.get(key)
        if existing is None:
            self._accounts[key] = Account(info=info)
        else:
            existing.info = info

    def insert_account_storage(self, address: str, slot: int, value: int) -> None:
        key = parse_address(address)
        account = self._accounts.setdefault(key, Account())
        if value == 0:
            account.storage.pop(slot, None)
        else:
            account.storage[slot] = value

    def insert_account(self, address: str, account: Account) -> None:
        self._accounts[parse_address(address)] = account.copy()

    def remove_account(self, address: str) -> None:
        self._accounts.pop(parse_address(address), None)

    def copy(self) -> WorldStateView:
        clone = WorldStateView()
        clone._accounts = {addr: acct.copy() for addr, acct in self._accounts.items()}
        return clone

    def to_dict(self) -> dict[str, Account]:
        return {addr: acct.copy() for addr, acct in self._accounts.items()}
