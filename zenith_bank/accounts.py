"""
Account Store Module

One account per regular user, each with a unique numeric account number
and a non-negative balance. ``adjust_balance`` is the sole path by which
a balance changes.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
import secrets

from .currency import Money, AmountLike, to_money
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import AccountNotFound, AccountCreationFailed, InsufficientFunds
from .config import get_config
from .logging_config import get_logger, log_action


@dataclass
class Account(StorageRecord):
    """
    Customer account. ``id`` is the account number.
    """
    user_id: str
    balance: Money
    
    @property
    def account_number(self) -> str:
        return self.id


class AccountManager:
    """
    Manages account creation, lookup and balance adjustment
    """
    
    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.accounts_table = "accounts"
        self.logger = get_logger("zenith.accounts")
    
    def create_account(self, user_id: str) -> Account:
        """
        Open the account for a user
        
        Args:
            user_id: ID of account owner
            
        Returns:
            Created Account with a zero balance
            
        Raises:
            AccountCreationFailed: the user already has an account, or no
                unused account number was drawn within the attempt budget
        """
        with self.storage.atomic():
            if self.get_account_by_user(user_id):
                raise AccountCreationFailed(f"User {user_id} already has an account.")
            
            account_number = self._generate_account_number()
            now = datetime.now(timezone.utc)
            account = Account(
                id=account_number,
                created_at=now,
                updated_at=now,
                user_id=user_id,
                balance=Money.zero()
            )
            self._save_account(account)
            
            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_CREATED,
                entity_type="account",
                entity_id=account_number,
                metadata={"user_id": user_id},
                user_id=user_id
            )
        
        log_action(self.logger, "info", "Account created",
                   user_id=user_id, action="create_account", resource="account",
                   extra={"account_number": account_number})
        return account
    
    def get_account_by_number(self, account_number: str) -> Optional[Account]:
        """Get account by account number"""
        account_dict = self.storage.load(self.accounts_table, account_number)
        if account_dict:
            return self._account_from_dict(account_dict)
        return None
    
    def get_account_by_user(self, user_id: str) -> Optional[Account]:
        """Get the account owned by a user"""
        accounts = self.storage.find(self.accounts_table, {"user_id": user_id})
        if accounts:
            return self._account_from_dict(accounts[0])
        return None
    
    def list_accounts(self) -> List[Account]:
        return [self._account_from_dict(data) for data in self.storage.load_all(self.accounts_table)]
    
    def adjust_balance(self, account_number: str, delta: AmountLike) -> Account:
        """
        Apply a signed change to an account balance
        
        Args:
            account_number: Account to adjust
            delta: Positive to credit, negative to debit
            
        Returns:
            The updated Account
            
        Raises:
            AccountNotFound: no such account
            InsufficientFunds: the result would be negative
        """
        delta = to_money(delta)
        with self.storage.atomic():
            account = self.get_account_by_number(account_number)
            if not account:
                raise AccountNotFound()
            
            new_balance = account.balance + delta
            if new_balance.is_negative():
                raise InsufficientFunds()
            
            account.balance = new_balance
            account.updated_at = datetime.now(timezone.utc)
            self._save_account(account)
        return account
    
    def replace_all(self, accounts: List[Account]) -> None:
        """Swap the whole account collection, keeping the given order"""
        with self.storage.atomic():
            self.storage.clear_table(self.accounts_table)
            for account in accounts:
                self._save_account(account)
    
    def _generate_account_number(self) -> str:
        """
        Draw random account numbers until an unused one turns up
        
        Leading zeros are allowed; numbers are opaque strings.
        """
        config = get_config()
        length = config.account_number_length
        for _ in range(config.account_number_max_attempts):
            candidate = str(secrets.randbelow(10 ** length)).zfill(length)
            if not self.storage.exists(self.accounts_table, candidate):
                return candidate
        
        log_action(self.logger, "error", "Account number space exhausted",
                   action="create_account", resource="account",
                   extra={"attempts": config.account_number_max_attempts})
        raise AccountCreationFailed("Could not generate a unique account number.")
    
    def _save_account(self, account: Account) -> None:
        self.storage.save(self.accounts_table, account.id, self._account_to_dict(account))
    
    def _account_to_dict(self, account: Account) -> Dict:
        """Convert Account to dictionary for storage"""
        return {
            'id': account.id,
            'created_at': account.created_at.isoformat(),
            'updated_at': account.updated_at.isoformat(),
            'user_id': account.user_id,
            'balance': str(account.balance.amount),
        }
    
    def _account_from_dict(self, data: Dict) -> Account:
        """Convert dictionary to Account"""
        return Account(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            user_id=data['user_id'],
            balance=Money(Decimal(data['balance']))
        )
