"""
Tests for statement generation and export
"""

import csv
import io
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from zenith_bank.storage import InMemoryStorage
from zenith_bank.system import BankingSystem
from zenith_bank.ledger import Transaction, TransactionKind
from zenith_bank.statements import StatementFormat, CSV_HEADERS
from zenith_bank.currency import Money
from zenith_bank.audit import AuditEventType
from zenith_bank.errors import AccountNotFound


class TestStatementGenerator:
    """Test statements over date ranges"""
    
    def setup_method(self):
        self.system = BankingSystem(storage=InMemoryStorage())
        self.alice = self.system.gateway.register("Alice", "alice@example.com", "secret", "1234")
        self.number = self.alice.account.account_number
        self.generator = self.system.statements
        self.today = datetime.now(timezone.utc).date()
    
    def teardown_method(self):
        self.system.close()
    
    def test_generate_current_period(self):
        """Test a statement covering today lists today's transactions"""
        self.system.gateway.deposit(self.alice.id, "100")
        self.system.gateway.withdraw(self.alice.id, "1234", "40")
        
        statement = self.generator.generate(self.number, self.today, self.today, user_id=self.alice.id)
        
        assert statement.holder_name == "Alice"
        assert [t.kind for t in statement.transactions] == [
            TransactionKind.WITHDRAWAL, TransactionKind.DEPOSIT
        ]
        assert statement.final_balance == Money(Decimal("60"))
        assert statement.closing_balance == Money(Decimal("60"))
        assert self.system.audit_trail.get_events_by_type(AuditEventType.STATEMENT_GENERATED)
    
    def test_closing_balance_reflects_period_end(self):
        """Test the closing balance ignores transactions after the period"""
        moment = datetime(2024, 1, 15, 12, tzinfo=timezone.utc)
        past = Transaction(
            id="old", created_at=moment, updated_at=moment,
            account_number=self.number, kind=TransactionKind.DEPOSIT,
            amount=Money(Decimal("30")), description="Deposit of $30.00"
        )
        with self.system.storage.atomic():
            self.system.ledger.replace_all([past])
            self.system.account_manager.adjust_balance(self.number, "30")
        self.system.gateway.deposit(self.alice.id, "20")
        
        statement = self.generator.generate(self.number, date(2024, 1, 1), date(2024, 1, 31))
        
        assert [t.id for t in statement.transactions] == ["old"]
        assert statement.closing_balance == Money(Decimal("30"))
        assert statement.final_balance == Money(Decimal("50"))
    
    def test_unknown_account(self):
        with pytest.raises(AccountNotFound):
            self.generator.generate("0000000000", self.today, self.today)
    
    def test_reversed_range(self):
        with pytest.raises(ValueError):
            self.generator.generate(self.number, self.today, self.today - timedelta(days=1))
    
    def test_csv_export(self):
        """Test the CSV carries header rows, a table and the final balance"""
        self.system.gateway.deposit(self.alice.id, "100")
        self.system.gateway.withdraw(self.alice.id, "1234", "40")
        statement = self.generator.generate(self.number, self.today, self.today)
        
        rows = list(csv.reader(io.StringIO(
            self.generator.export_statement(statement, StatementFormat.CSV)
        )))
        
        assert rows[0] == ["Account Statement"]
        assert rows[1] == ["Account Holder", "Alice"]
        assert rows[2] == ["Account Number", self.number]
        assert rows[3] == ["Statement Period", f"{self.today} to {self.today}"]
        assert rows[5] == []
        assert rows[6] == CSV_HEADERS
        assert rows[7][1:] == ["Withdrawal of $40.00", "Withdrawal", "$40.00", ""]
        assert rows[8][1:] == ["Deposit of $100.00", "Deposit", "", "$100.00"]
        assert rows[-1] == ["", "Final Balance", "", "", "$60.00"]
    
    def test_json_export(self):
        self.system.gateway.deposit(self.alice.id, "5")
        statement = self.generator.generate(self.number, self.today, self.today)
        
        data = json.loads(self.generator.export_statement(statement, StatementFormat.JSON))
        
        assert data["account_number"] == self.number
        assert data["final_balance"] == "5.00"
        assert data["transactions"][0]["signed_amount"] == "5.00"
    
    def test_filename(self):
        statement = self.generator.generate(self.number, self.today, self.today)
        
        assert self.generator.filename(statement, StatementFormat.CSV) == \
            f"statement_{self.number}_{self.today.isoformat()}.csv"
