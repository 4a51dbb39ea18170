"""
Transaction Ledger

Append-only log of transaction records. Records are immutable once
appended; every listing is recomputed from storage on each call and
ordered newest first, with records sharing a timestamp kept in the
order they were appended.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
import uuid

from .currency import Money, AmountLike, positive_money
from .storage import StorageInterface, StorageRecord


class TransactionKind(Enum):
    """Ledger record kinds; values are the persisted type literals"""
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    TRANSFER_DEBIT = "Transfer (Debit)"
    TRANSFER_CREDIT = "Transfer (Credit)"
    
    @property
    def is_debit(self) -> bool:
        """Debits reduce the account balance"""
        return self in (TransactionKind.WITHDRAWAL, TransactionKind.TRANSFER_DEBIT)


@dataclass
class Transaction(StorageRecord):
    """
    Immutable ledger record. ``created_at`` is the transaction timestamp.
    """
    account_number: str
    kind: TransactionKind
    amount: Money
    description: str
    
    @property
    def timestamp(self) -> datetime:
        return self.created_at
    
    @property
    def signed_amount(self) -> Money:
        """Negative for debits, positive for credits"""
        return -self.amount if self.kind.is_debit else self.amount


class TransactionLedger:
    """
    Append-only ledger of account transactions
    """
    
    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.transactions_table = "transactions"
    
    def append(self, account_number: str, kind: TransactionKind, amount: AmountLike,
               description: str) -> Transaction:
        """
        Record a transaction
        
        Args:
            account_number: Account the record belongs to
            kind: Transaction kind
            amount: Positive amount
            description: Human-readable description
            
        Returns:
            The stored Transaction with a fresh id and the current timestamp
        """
        amount = positive_money(amount)
        now = datetime.now(timezone.utc)
        transaction = Transaction(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_number=account_number,
            kind=kind,
            amount=amount,
            description=description
        )
        self.storage.save(self.transactions_table, transaction.id,
                          self._transaction_to_dict(transaction))
        return transaction
    
    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        data = self.storage.load(self.transactions_table, transaction_id)
        if data:
            return self._transaction_from_dict(data)
        return None
    
    def list_by_account(self, account_number: str) -> List[Transaction]:
        """All transactions for an account, newest first"""
        records = self.storage.find(self.transactions_table, {"account_number": account_number})
        return self._newest_first(records)
    
    def list_all(self, newest_first: bool = True) -> List[Transaction]:
        """
        All transactions across accounts
        
        Newest first by default; ``newest_first=False`` returns plain
        insertion order, which is what snapshots persist.
        """
        records = self.storage.load_all(self.transactions_table)
        if not newest_first:
            return [self._transaction_from_dict(data) for data in records]
        return self._newest_first(records)
    
    def list_by_account_between(self, account_number: str, start_date: date,
                                end_date: date) -> List[Transaction]:
        """
        Transactions for an account whose UTC date falls within
        ``start_date``..``end_date`` inclusive, newest first
        """
        if start_date > end_date:
            raise ValueError("Start date must not be after end date")
        return [
            t for t in self.list_by_account(account_number)
            if start_date <= t.timestamp.date() <= end_date
        ]
    
    def calculate_balance(self, account_number: str,
                          as_of: Optional[datetime] = None) -> Money:
        """
        Net signed sum of an account's transactions
        
        Args:
            account_number: Account to total
            as_of: Only count transactions at or before this instant
        """
        balance = Money.zero()
        for transaction in self.list_by_account(account_number):
            if as_of is None or transaction.timestamp <= as_of:
                balance = balance + transaction.signed_amount
        return balance
    
    def replace_all(self, transactions: List[Transaction]) -> None:
        """Swap the whole ledger, keeping the given order as insertion order"""
        with self.storage.atomic():
            self.storage.clear_table(self.transactions_table)
            for transaction in transactions:
                self.storage.save(self.transactions_table, transaction.id,
                                  self._transaction_to_dict(transaction))
    
    def _newest_first(self, records: List[Dict]) -> List[Transaction]:
        transactions = [self._transaction_from_dict(data) for data in records]
        # list.sort is stable, so equal timestamps keep insertion order
        transactions.sort(key=lambda t: t.timestamp, reverse=True)
        return transactions
    
    def _transaction_to_dict(self, transaction: Transaction) -> Dict:
        return {
            'id': transaction.id,
            'created_at': transaction.created_at.isoformat(),
            'updated_at': transaction.updated_at.isoformat(),
            'account_number': transaction.account_number,
            'kind': transaction.kind.value,
            'amount': str(transaction.amount.amount),
            'description': transaction.description,
        }
    
    def _transaction_from_dict(self, data: Dict) -> Transaction:
        return Transaction(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            kind=TransactionKind(data['kind']),
            amount=Money(Decimal(data['amount'])),
            description=data['description']
        )
