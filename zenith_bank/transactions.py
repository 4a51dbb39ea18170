"""
Transaction Processing Module

Executes deposits, withdrawals and transfers. Each operation adjusts
balances through the Account Store and appends ledger records inside a
single storage atomic scope, so callers see either every effect or none.

Concurrency: one re-entrant lock per account number serializes mutations
to that account. Transfers take both locks in ascending account-number
order, so opposing transfers cannot deadlock. Account locks are always
taken before the storage lock.
"""

from contextlib import contextmanager, ExitStack
from dataclasses import dataclass
from typing import Dict, List
import threading

from .currency import Money, AmountLike, positive_money
from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .accounts import AccountManager
from .ledger import TransactionLedger, Transaction, TransactionKind
from .errors import AccountNotFound, BankingError, SameAccount
from .config import get_config
from .logging_config import get_logger, log_action


@dataclass
class TransferResult:
    """Both legs of a completed transfer"""
    debit: Transaction
    credit: Transaction
    
    @property
    def amount(self) -> Money:
        return self.debit.amount


class AccountLockManager:
    """Hands out one RLock per account number"""
    
    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()
    
    def _lock_for(self, account_number: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_number)
            if lock is None:
                lock = self._locks[account_number] = threading.RLock()
            return lock
    
    @contextmanager
    def locked(self, *account_numbers: str):
        """Hold the locks of every given account, acquired in sorted order"""
        with ExitStack() as stack:
            for number in sorted(set(account_numbers)):
                stack.enter_context(self._lock_for(number))
            yield


class TransactionProcessor:
    """
    Processes deposits, withdrawals and transfers atomically
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        ledger: TransactionLedger,
        account_manager: AccountManager,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.ledger = ledger
        self.account_manager = account_manager
        self.audit_trail = audit_trail
        self.locks = AccountLockManager()
        self.logger = get_logger("zenith.transactions")
    
    def _format(self, amount: Money) -> str:
        return amount.to_string(get_config().currency_symbol)
    
    def deposit(self, account_number: str, amount: AmountLike) -> Transaction:
        """
        Credit an account
        
        Raises:
            InvalidAmount: amount is not positive
            AccountNotFound: no such account
        """
        amount = positive_money(amount)
        try:
            with self.locks.locked(account_number), self.storage.atomic():
                self.account_manager.adjust_balance(account_number, amount)
                transaction = self.ledger.append(
                    account_number, TransactionKind.DEPOSIT, amount,
                    f"Deposit of {self._format(amount)}"
                )
                self.audit_trail.log_event(
                    event_type=AuditEventType.DEPOSIT_POSTED,
                    entity_type="transaction",
                    entity_id=transaction.id,
                    metadata={"account_number": account_number, "amount": amount.amount}
                )
        except BankingError as e:
            self._log_failure("deposit", account_number, amount, e)
            raise
        
        log_action(self.logger, "info", "Deposit posted",
                   action="deposit", resource="transaction",
                   extra={"account_number": account_number, "amount": str(amount.amount),
                          "transaction_id": transaction.id})
        return transaction
    
    def withdraw(self, account_number: str, amount: AmountLike) -> Transaction:
        """
        Debit an account
        
        Raises:
            InvalidAmount: amount is not positive
            AccountNotFound: no such account
            InsufficientFunds: balance is less than amount
        """
        amount = positive_money(amount)
        try:
            with self.locks.locked(account_number), self.storage.atomic():
                self.account_manager.adjust_balance(account_number, -amount)
                transaction = self.ledger.append(
                    account_number, TransactionKind.WITHDRAWAL, amount,
                    f"Withdrawal of {self._format(amount)}"
                )
                self.audit_trail.log_event(
                    event_type=AuditEventType.WITHDRAWAL_POSTED,
                    entity_type="transaction",
                    entity_id=transaction.id,
                    metadata={"account_number": account_number, "amount": amount.amount}
                )
        except BankingError as e:
            self._log_failure("withdraw", account_number, amount, e)
            raise
        
        log_action(self.logger, "info", "Withdrawal posted",
                   action="withdraw", resource="transaction",
                   extra={"account_number": account_number, "amount": str(amount.amount),
                          "transaction_id": transaction.id})
        return transaction
    
    def transfer(self, from_account_number: str, to_account_number: str,
                 amount: AmountLike) -> TransferResult:
        """
        Move funds between two accounts
        
        The debit leg is appended before the credit leg.
        
        Raises:
            InvalidAmount: amount is not positive
            SameAccount: source and destination are the same account
            AccountNotFound: either account is missing
            InsufficientFunds: source balance is less than amount
        """
        amount = positive_money(amount)
        if from_account_number == to_account_number:
            raise SameAccount()
        
        try:
            with self.locks.locked(from_account_number, to_account_number), self.storage.atomic():
                for number in (from_account_number, to_account_number):
                    if not self.account_manager.get_account_by_number(number):
                        raise AccountNotFound()
                
                self.account_manager.adjust_balance(from_account_number, -amount)
                self.account_manager.adjust_balance(to_account_number, amount)
                debit = self.ledger.append(
                    from_account_number, TransactionKind.TRANSFER_DEBIT, amount,
                    f"Transfer to {to_account_number}"
                )
                credit = self.ledger.append(
                    to_account_number, TransactionKind.TRANSFER_CREDIT, amount,
                    f"Transfer from {from_account_number}"
                )
                self.audit_trail.log_event(
                    event_type=AuditEventType.TRANSFER_POSTED,
                    entity_type="transaction",
                    entity_id=debit.id,
                    metadata={
                        "from_account_number": from_account_number,
                        "to_account_number": to_account_number,
                        "amount": amount.amount,
                        "credit_transaction_id": credit.id
                    }
                )
        except BankingError as e:
            self._log_failure("transfer", from_account_number, amount, e,
                              to_account_number=to_account_number)
            raise
        
        log_action(self.logger, "info", "Transfer posted",
                   action="transfer", resource="transaction",
                   extra={"from_account_number": from_account_number,
                          "to_account_number": to_account_number,
                          "amount": str(amount.amount)})
        return TransferResult(debit=debit, credit=credit)
    
    def get_account_transactions(self, account_number: str) -> List[Transaction]:
        """Ledger history for an account, newest first"""
        return self.ledger.list_by_account(account_number)
    
    def _log_failure(self, action: str, account_number: str, amount: Money,
                     error: BankingError, **extra) -> None:
        log_action(self.logger, "warning", f"{action.capitalize()} rejected: {error}",
                   action=action, resource="transaction",
                   extra={"account_number": account_number, "amount": str(amount.amount),
                          "error": type(error).__name__, **extra})
