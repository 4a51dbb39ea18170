"""
Tests for deposits, withdrawals and transfers
"""

import threading
from decimal import Decimal

import pytest

from zenith_bank.storage import InMemoryStorage, SQLiteStorage
from zenith_bank.audit import AuditTrail, AuditEventType
from zenith_bank.accounts import AccountManager
from zenith_bank.ledger import TransactionLedger, TransactionKind
from zenith_bank.transactions import TransactionProcessor
from zenith_bank.currency import Money
from zenith_bank.errors import (
    AccountNotFound, InsufficientFunds, InvalidAmount, SameAccount
)


class TestTransactionProcessor:
    """Test transaction processing"""
    
    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
        self.accounts = AccountManager(self.storage, self.audit)
        self.ledger = TransactionLedger(self.storage)
        self.processor = TransactionProcessor(self.storage, self.ledger, self.accounts, self.audit)
        
        self.alice = self.accounts.create_account("alice").account_number
        self.bob = self.accounts.create_account("bob").account_number
    
    def balance(self, account_number):
        return self.accounts.get_account_by_number(account_number).balance
    
    def assert_balances_match_ledger(self):
        for account in self.accounts.list_accounts():
            assert account.balance == self.ledger.calculate_balance(account.account_number)
    
    def test_deposit_withdraw_transfer(self):
        """Test the usual sequence of operations and their records"""
        deposit = self.processor.deposit(self.alice, "100")
        withdrawal = self.processor.withdraw(self.alice, "30")
        result = self.processor.transfer(self.alice, self.bob, "50")
        
        assert self.balance(self.alice) == Money(Decimal("20.00"))
        assert self.balance(self.bob) == Money(Decimal("50.00"))
        
        assert deposit.description == "Deposit of $100.00"
        assert withdrawal.description == "Withdrawal of $30.00"
        assert result.debit.kind == TransactionKind.TRANSFER_DEBIT
        assert result.debit.description == f"Transfer to {self.bob}"
        assert result.credit.kind == TransactionKind.TRANSFER_CREDIT
        assert result.credit.description == f"Transfer from {self.alice}"
        assert result.amount == Money(Decimal("50"))
        
        history = self.processor.get_account_transactions(self.alice)
        assert [t.kind for t in history] == [
            TransactionKind.TRANSFER_DEBIT, TransactionKind.WITHDRAWAL, TransactionKind.DEPOSIT
        ]
        self.assert_balances_match_ledger()
    
    def test_worked_scenario(self):
        """Test deposit 100, withdraw 30, transfer 20 leaves 50 and 20"""
        self.processor.deposit(self.alice, "100.00")
        assert self.balance(self.alice) == Money(Decimal("100.00"))
        assert [t.description for t in self.processor.get_account_transactions(self.alice)] == [
            "Deposit of $100.00"
        ]

        self.processor.withdraw(self.alice, "30.00")
        assert self.balance(self.alice) == Money(Decimal("70.00"))

        result = self.processor.transfer(self.alice, self.bob, "20.00")
        assert self.balance(self.alice) == Money(Decimal("50.00"))
        assert self.balance(self.bob) == Money(Decimal("20.00"))

        debits = [t for t in self.ledger.list_all() if t.kind == TransactionKind.TRANSFER_DEBIT]
        credits = [t for t in self.ledger.list_all() if t.kind == TransactionKind.TRANSFER_CREDIT]
        assert [t.account_number for t in debits] == [self.alice]
        assert [t.account_number for t in credits] == [self.bob]
        assert result.credit.amount == result.debit.amount == Money(Decimal("20.00"))
        assert abs(result.credit.timestamp - result.debit.timestamp).total_seconds() < 1

        assert len(self.ledger.list_all()) == 4
        assert len(self.processor.get_account_transactions(self.alice)) == 3
        assert len(self.processor.get_account_transactions(self.bob)) == 1
        self.assert_balances_match_ledger()

    def test_amounts_round_half_up(self):
        self.processor.deposit(self.alice, "10.005")
        assert self.balance(self.alice) == Money(Decimal("10.01"))
    
    def test_invalid_amounts(self):
        """Test zero, negative and non-numeric amounts change nothing"""
        for amount in [0, "-5", "abc", None]:
            with pytest.raises(InvalidAmount):
                self.processor.deposit(self.alice, amount)
        
        assert self.ledger.list_all() == []
        assert self.balance(self.alice).is_zero()
    
    def test_insufficient_funds(self):
        """Test an overdraft leaves no record and no audit event"""
        self.processor.deposit(self.alice, "10")
        events_before = self.audit.count_events()
        
        with pytest.raises(InsufficientFunds):
            self.processor.withdraw(self.alice, "10.01")
        with pytest.raises(InsufficientFunds):
            self.processor.transfer(self.alice, self.bob, "11")
        
        assert len(self.ledger.list_all()) == 1
        assert self.balance(self.alice) == Money(Decimal("10"))
        assert self.balance(self.bob).is_zero()
        assert self.audit.count_events() == events_before
    
    def test_unknown_accounts(self):
        with pytest.raises(AccountNotFound):
            self.processor.deposit("0000000000", "5")
        with pytest.raises(AccountNotFound):
            self.processor.transfer(self.alice, "0000000000", "5")
        assert self.ledger.list_all() == []
    
    def test_transfer_check_order(self):
        """Test amount is checked before same-account, which precedes lookup and funds"""
        with pytest.raises(InvalidAmount):
            self.processor.transfer(self.alice, self.alice, "0")
        with pytest.raises(SameAccount):
            self.processor.transfer(self.alice, self.alice, "5")
        with pytest.raises(SameAccount):
            self.processor.transfer("0000000000", "0000000000", "5")
        with pytest.raises(AccountNotFound):
            self.processor.transfer(self.alice, "0000000000", "5000")
    
    def test_transfer_is_audited_once(self):
        self.processor.deposit(self.alice, "20")
        result = self.processor.transfer(self.alice, self.bob, "20")
        
        events = self.audit.get_events_by_type(AuditEventType.TRANSFER_POSTED)
        assert len(events) == 1
        assert events[0].entity_id == result.debit.id
        assert events[0].metadata["credit_transaction_id"] == result.credit.id
    
    def test_failed_leg_rolls_back(self, monkeypatch):
        """Test a failure after the debit undoes the whole transfer"""
        self.processor.deposit(self.alice, "50")
        original_append = self.ledger.append
        
        def failing_append(account_number, kind, amount, description):
            if kind == TransactionKind.TRANSFER_CREDIT:
                raise InvalidAmount("simulated failure")
            return original_append(account_number, kind, amount, description)
        
        monkeypatch.setattr(self.ledger, "append", failing_append)
        with pytest.raises(InvalidAmount):
            self.processor.transfer(self.alice, self.bob, "20")
        
        assert self.balance(self.alice) == Money(Decimal("50"))
        assert self.balance(self.bob).is_zero()
        assert len(self.ledger.list_all()) == 1
        self.assert_balances_match_ledger()


class TestConcurrentTransfers:
    """Test serialization of competing operations"""
    
    @pytest.fixture(params=["memory", "sqlite"])
    def processor(self, request, tmp_path):
        if request.param == "memory":
            storage = InMemoryStorage()
        else:
            storage = SQLiteStorage(tmp_path / "concurrent.db")
        audit = AuditTrail(storage)
        accounts = AccountManager(storage, audit)
        ledger = TransactionLedger(storage)
        processor = TransactionProcessor(storage, ledger, accounts, audit)
        yield processor
        storage.close()
    
    def test_opposing_transfers(self, processor):
        """Test opposing transfers neither deadlock nor lose money"""
        accounts = processor.account_manager
        a = accounts.create_account("a").account_number
        b = accounts.create_account("b").account_number
        processor.deposit(a, "100")
        processor.deposit(b, "100")
        
        errors = []
        
        def move(source, target):
            for _ in range(20):
                try:
                    processor.transfer(source, target, "7")
                except InsufficientFunds:
                    pass
                except Exception as e:
                    errors.append(e)
        
        threads = [threading.Thread(target=move, args=(a, b)),
                   threading.Thread(target=move, args=(b, a)),
                   threading.Thread(target=move, args=(a, b)),
                   threading.Thread(target=move, args=(b, a))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        
        assert not any(thread.is_alive() for thread in threads)
        assert errors == []
        
        total = accounts.get_account_by_number(a).balance + accounts.get_account_by_number(b).balance
        assert total == Money(Decimal("200"))
        for number in (a, b):
            assert accounts.get_account_by_number(number).balance == processor.ledger.calculate_balance(number)
        assert processor.audit_trail.verify_integrity()['valid']
    
    def test_concurrent_withdrawals_never_overdraw(self, processor):
        accounts = processor.account_manager
        a = accounts.create_account("a").account_number
        processor.deposit(a, "50")
        successes = []
        
        def withdraw():
            try:
                processor.withdraw(a, "10")
                successes.append(1)
            except InsufficientFunds:
                pass
        
        threads = [threading.Thread(target=withdraw) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        
        assert len(successes) == 5
        assert accounts.get_account_by_number(a).balance.is_zero()
