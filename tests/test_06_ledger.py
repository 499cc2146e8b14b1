"""Tests for the credit ledger."""
from __future__ import annotations

import threading

import pytest

from voxai.services.errors import AccountNotFound, InsufficientCreditsError, InvalidInputError
from voxai.services.ledger import TIER_PRIVILEGED, TIER_STANDARD, Account, CreditLedger


class TestResolve:
    """Accounts are created on first sight and never reset."""

    def test_new_account(self):
        ledger = CreditLedger(starting_balance=20000)
        account = ledger.resolve("a@example.com")
        assert account == Account("a@example.com", 20000, TIER_STANDARD)
        assert len(ledger) == 1

    def test_idempotent(self):
        ledger = CreditLedger(starting_balance=20000)
        ledger.resolve("a@example.com")
        ledger.check_and_deduct("a@example.com", 500)
        assert ledger.resolve("a@example.com").balance == 19500
        assert len(ledger) == 1

    def test_privileged(self):
        ledger = CreditLedger(privileged_identities=["boss@example.com"])
        account = ledger.resolve("boss@example.com")
        assert account.unlimited
        assert account.is_premium
        assert account.tier == TIER_PRIVILEGED
        assert account.to_dict() == {
            "email": "boss@example.com",
            "credits": None,
            "unlimited": True,
            "tier": "privileged",
            "isPremium": True,
        }

    def test_get_unknown(self):
        assert CreditLedger().get("nobody@example.com") is None


class TestCheckAndDeduct:
    def test_deducts(self):
        ledger = CreditLedger(starting_balance=20000)
        ledger.resolve("a@example.com")
        assert ledger.check_and_deduct("a@example.com", 500).balance == 19500
        assert ledger.stats()["credits_deducted"] == 500

    def test_exact_balance(self):
        ledger = CreditLedger(starting_balance=100)
        ledger.resolve("a@example.com")
        assert ledger.check_and_deduct("a@example.com", 100).balance == 0

    def test_zero_amount(self):
        ledger = CreditLedger(starting_balance=0)
        ledger.resolve("a@example.com")
        assert ledger.check_and_deduct("a@example.com", 0).balance == 0

    def test_insufficient_leaves_balance(self):
        ledger = CreditLedger(starting_balance=100)
        ledger.resolve("a@example.com")
        with pytest.raises(InsufficientCreditsError) as exc:
            ledger.check_and_deduct("a@example.com", 600)
        assert exc.value.required == 600
        assert exc.value.available == 100
        assert ledger.get("a@example.com").balance == 100

    def test_unknown_identity(self):
        with pytest.raises(AccountNotFound):
            CreditLedger().check_and_deduct("nobody@example.com", 1)

    def test_negative_amount(self):
        ledger = CreditLedger()
        ledger.resolve("a@example.com")
        with pytest.raises(InvalidInputError):
            ledger.check_and_deduct("a@example.com", -5)

    def test_unlimited_never_decremented(self):
        ledger = CreditLedger(privileged_identities=["boss@example.com"])
        ledger.resolve("boss@example.com")
        account = ledger.check_and_deduct("boss@example.com", 10 ** 9)
        assert account.balance is None
        assert ledger.stats()["credits_deducted"] == 0

    def test_can_afford(self):
        ledger = CreditLedger(starting_balance=10)
        ledger.resolve("a@example.com")
        assert ledger.can_afford("a@example.com", 10)
        assert not ledger.can_afford("a@example.com", 11)
        assert not ledger.can_afford("nobody@example.com", 0)

    def test_snapshots_are_immutable(self):
        ledger = CreditLedger(starting_balance=1000)
        before = ledger.resolve("a@example.com")
        ledger.check_and_deduct("a@example.com", 10)
        assert before.balance == 1000


class TestConcurrency:
    """Concurrent deductions for one identity never overdraw it."""

    def test_parallel_deductions(self):
        ledger = CreditLedger(starting_balance=1000)
        ledger.resolve("a@example.com")
        results = []
        barrier = threading.Barrier(20)

        def worker():
            barrier.wait()
            try:
                ledger.check_and_deduct("a@example.com", 100)
                results.append("ok")
            except InsufficientCreditsError:
                results.append("denied")

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 10
        assert results.count("denied") == 10
        assert ledger.get("a@example.com").balance == 0

    def test_identities_are_independent(self):
        ledger = CreditLedger(starting_balance=100)
        for who in ("a", "b"):
            ledger.resolve(who)
        ledger.check_and_deduct("a", 100)
        assert ledger.get("b").balance == 100
        assert ledger.stats() == {"accounts": 2, "privileged": 0, "credits_deducted": 100}
