"""
Credit Ledger.

In-memory map of identity -> Account for the lifetime of the process.
Accounts are created lazily the first time an identity is resolved and
are only ever mutated by check_and_deduct().

Balance Model:
    - standard accounts start with billing.starting_balance credits
      (20000 by default) and pay one credit per spoken character
    - identities on the privileged allow-list get an unlimited balance
      (balance=None) and are never decremented

Concurrency:
    Each identity has its own threading.Lock, created under a short
    store-wide lock. check_and_deduct() holds the identity lock across
    the read-compare-write, so two concurrent deductions for the same
    identity can never both pass the balance check. Different identities
    never contend on the same lock.

Account objects are frozen snapshots; a caller holding one never sees it
change underneath them.

Example:
    >>> ledger = CreditLedger(starting_balance=20000)
    >>> ledger.resolve("a@example.com").balance
    20000
    >>> ledger.check_and_deduct("a@example.com", 500).balance
    19500
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from voxai.core.logging import debug, get_logger, info, warn
from voxai.services.errors import AccountNotFound, InsufficientCreditsError, InvalidInputError

_LOG = get_logger("voxai.ledger")

TIER_STANDARD = "standard"
TIER_PRIVILEGED = "privileged"


@dataclass(frozen=True)
class Account:
    """
    Immutable snapshot of a ledger entry.

    Attributes:
        identity: Owner identity (an email).
        balance: Remaining credits, or None for unlimited.
        tier: "standard" or "privileged".
    """
    identity: str
    balance: Optional[int]
    tier: str = TIER_STANDARD

    @property
    def unlimited(self) -> bool:
        return self.balance is None

    @property
    def is_premium(self) -> bool:
        return self.tier == TIER_PRIVILEGED

    def can_afford(self, amount: int) -> bool:
        return self.balance is None or self.balance >= amount

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape served by /api/user."""
        return {
            "email": self.identity,
            "credits": self.balance,
            "unlimited": self.unlimited,
            "tier": self.tier,
            "isPremium": self.is_premium,
        }


class CreditLedger:
    """
    Thread-safe in-memory credit ledger.

    Args:
        starting_balance: Credits granted to new standard accounts.
        privileged_identities: Identities that get unlimited balances.
    """

    def __init__(self, starting_balance: int = 20000, privileged_identities: Iterable[str] = ()):
        self._starting_balance = starting_balance
        self._privileged = frozenset(privileged_identities)
        self._accounts: Dict[str, Account] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._store_lock = threading.Lock()
        self._total_deducted = 0

    def _lock_for(self, identity: str) -> threading.Lock:
        with self._store_lock:
            lock = self._locks.get(identity)
            if lock is None:
                lock = threading.Lock()
                self._locks[identity] = lock
            return lock

    def _new_account(self, identity: str) -> Account:
        if identity in self._privileged:
            return Account(identity=identity, balance=None, tier=TIER_PRIVILEGED)
        return Account(identity=identity, balance=self._starting_balance, tier=TIER_STANDARD)

    def resolve(self, identity: str) -> Account:
        """
        Get the account for identity, creating it on first sight.

        Idempotent: resolving an existing identity returns its current
        state and never resets the balance.
        """
        with self._store_lock:
            account = self._accounts.get(identity)
            if account is not None:
                return account
            account = self._new_account(identity)
            self._accounts[identity] = account

        info(_LOG, "account_created", identity=identity, tier=account.tier,
             balance="unlimited" if account.unlimited else account.balance)
        return account

    def get(self, identity: str) -> Optional[Account]:
        with self._store_lock:
            return self._accounts.get(identity)

    def can_afford(self, identity: str, amount: int) -> bool:
        """Non-mutating balance check. Unknown identities cannot afford anything."""
        account = self.get(identity)
        return account is not None and account.can_afford(amount)

    def check_and_deduct(self, identity: str, amount: int) -> Account:
        """
        Atomically verify and subtract amount from identity's balance.

        Args:
            identity: Account owner.
            amount: Credits to deduct (>= 0).

        Returns:
            The updated Account snapshot (unchanged for unlimited accounts).

        Raises:
            AccountNotFound: If identity has never been resolved.
            InvalidInputError: If amount is negative.
            InsufficientCreditsError: If the balance is lower than amount.
                The balance is left unchanged.
        """
        if amount < 0:
            raise InvalidInputError("Amount must be non-negative", {"amount": amount})

        with self._lock_for(identity):
            account = self.get(identity)
            if account is None:
                raise AccountNotFound(identity)

            if account.unlimited:
                debug(_LOG, "deduct_skipped_unlimited", identity=identity, cost=amount)
                return account

            if account.balance < amount:
                warn(_LOG, "insufficient_credits", identity=identity, required=amount,
                     available=account.balance)
                raise InsufficientCreditsError(required=amount, available=account.balance)

            updated = Account(identity=identity, balance=account.balance - amount, tier=account.tier)
            with self._store_lock:
                self._accounts[identity] = updated
                self._total_deducted += amount

        info(_LOG, "deducted", identity=identity, cost=amount, balance=updated.balance)
        return updated

    def __len__(self) -> int:
        with self._store_lock:
            return len(self._accounts)

    def stats(self) -> Dict[str, int]:
        with self._store_lock:
            privileged = sum(1 for a in self._accounts.values() if a.unlimited)
            return {
                "accounts": len(self._accounts),
                "privileged": privileged,
                "credits_deducted": self._total_deducted,
            }
