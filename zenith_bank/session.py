"""
Session/Auth Gateway Module

Drives login, registration and logout, remembers who is signed in, and
gates withdrawals and transfers behind PIN re-verification before the
Transaction Processor is invoked.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import re

from .storage import StorageInterface
from .users import User, UserManager
from .accounts import Account, AccountManager
from .ledger import Transaction
from .transactions import TransactionProcessor, TransferResult
from .currency import AmountLike
from .errors import AccountNotFound, IncorrectPin, InvalidPin
from .config import get_config
from .logging_config import get_logger, log_action


SESSION_KEY = "zenith-user-id"


class SessionStore(ABC):
    """Remembers the identifier of the signed-in user"""
    
    @abstractmethod
    def remember(self, user_id: str) -> None:
        pass
    
    @abstractmethod
    def recall(self) -> Optional[str]:
        pass
    
    @abstractmethod
    def forget(self) -> None:
        pass


class StorageSessionStore(SessionStore):
    """Keeps the remembered identifier as a single storage record"""
    
    def __init__(self, storage: StorageInterface, table_name: str = "session_state"):
        self.storage = storage
        self.table_name = table_name
    
    def remember(self, user_id: str) -> None:
        self.storage.save(self.table_name, SESSION_KEY, {"id": SESSION_KEY, "user_id": user_id})
    
    def recall(self) -> Optional[str]:
        record = self.storage.load(self.table_name, SESSION_KEY)
        return record["user_id"] if record else None
    
    def forget(self) -> None:
        self.storage.delete(self.table_name, SESSION_KEY)


@dataclass
class CurrentUser:
    """A resolved user with their account (None for the administrator)"""
    user: User
    account: Optional[Account]
    
    @property
    def id(self) -> str:
        return self.user.id
    
    @property
    def is_admin(self) -> bool:
        return self.user.is_admin
    
    def to_dict(self) -> Dict[str, Any]:
        result = self.user.to_public_dict()
        result["account"] = None
        if self.account:
            result["account"] = {
                "account_number": self.account.account_number,
                "balance": str(self.account.balance.amount),
            }
        return result


class AuthGateway:
    """
    Orchestrates identity, accounts and the transaction processor for
    a signed-in user
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        user_manager: UserManager,
        account_manager: AccountManager,
        transaction_processor: TransactionProcessor,
        session_store: Optional[SessionStore] = None
    ):
        self.storage = storage
        self.users = user_manager
        self.accounts = account_manager
        self.processor = transaction_processor
        self.session_store = session_store or StorageSessionStore(storage)
        self.logger = get_logger("zenith.session")
    
    @staticmethod
    def validate_pin_format(pin: str) -> None:
        """Raise InvalidPin unless ``pin`` is exactly the configured number of digits"""
        length = get_config().pin_length
        if not isinstance(pin, str) or not re.fullmatch(rf"\d{{{length}}}", pin):
            raise InvalidPin(f"PIN must be exactly {length} digits.")
    
    def register(self, name: str, email: str, password: str, pin: str,
                 remember: bool = True) -> CurrentUser:
        """
        Create a user and their account as one unit, then sign them in
        
        Raises:
            InvalidPin: PIN format is wrong
            DuplicateEmail: email already registered
            AccountCreationFailed: no account could be opened; the user is not kept
        """
        self.validate_pin_format(pin)
        with self.storage.atomic():
            user = self.users.register(name, email, password, pin)
            account = self.accounts.create_account(user.id)
        
        if remember:
            self.session_store.remember(user.id)
        return CurrentUser(user=user, account=account)
    
    def login(self, email: str, password: str, remember: bool = True) -> CurrentUser:
        """
        Authenticate and remember the user
        
        ``remember=False`` authenticates without touching the session
        store; the HTTP boundary carries identity in bearer tokens instead.
        
        Raises:
            InvalidCredentials: unknown email or wrong password
            AccountNotFound: a regular user has no account
        """
        user = self.users.login(email, password)
        account = self.accounts.get_account_by_user(user.id)
        if account is None and not user.is_admin:
            log_action(self.logger, "warning", "Signed-in user has no account",
                       user_id=user.id, action="login", resource="auth")
            raise AccountNotFound("Account not found for this user.")
        
        if remember:
            self.session_store.remember(user.id)
        return CurrentUser(user=user, account=account)
    
    def logout(self) -> None:
        user_id = self.session_store.recall()
        self.session_store.forget()
        log_action(self.logger, "info", "User signed out",
                   user_id=user_id, action="logout", resource="auth")
    
    def resolve_user(self, user_id: str) -> Optional[CurrentUser]:
        """Look up a user and their account without touching the session"""
        user = self.users.find_by_id(user_id)
        if user is None:
            return None
        account = self.accounts.get_account_by_user(user.id)
        if account is None and not user.is_admin:
            return None
        return CurrentUser(user=user, account=account)
    
    def resolve_current_user(self) -> Optional[CurrentUser]:
        """
        Resolve the remembered user
        
        A remembered identifier that no longer resolves is forgotten.
        """
        user_id = self.session_store.recall()
        if not user_id:
            return None
        current = self.resolve_user(user_id)
        if current is None:
            self.session_store.forget()
        return current
    
    def verify_pin(self, user_id: str, pin: str) -> bool:
        return self.users.verify_pin(user_id, pin)
    
    def _require_pin(self, user_id: str, pin: str) -> None:
        if not self.users.verify_pin(user_id, pin):
            raise IncorrectPin()
    
    def _account_of(self, user_id: str) -> Account:
        account = self.accounts.get_account_by_user(user_id)
        if account is None:
            raise AccountNotFound("Account not found for this user.")
        return account
    
    def deposit(self, user_id: str, amount: AmountLike) -> Transaction:
        """Deposit into the user's own account (no PIN required)"""
        return self.processor.deposit(self._account_of(user_id).account_number, amount)
    
    def withdraw(self, user_id: str, pin: str, amount: AmountLike) -> Transaction:
        """
        Withdraw from the user's own account after PIN verification
        
        Raises:
            IncorrectPin: PIN did not verify; nothing was attempted
        """
        account = self._account_of(user_id)
        self._require_pin(user_id, pin)
        return self.processor.withdraw(account.account_number, amount)
    
    def transfer(self, user_id: str, pin: str, to_account_number: str,
                 amount: AmountLike) -> TransferResult:
        """
        Transfer from the user's own account after PIN verification
        
        Raises:
            IncorrectPin: PIN did not verify; nothing was attempted
        """
        account = self._account_of(user_id)
        self._require_pin(user_id, pin)
        return self.processor.transfer(account.account_number, to_account_number, amount)
    
    def change_pin(self, user_id: str, old_pin: str, new_pin: str,
                   confirm_pin: Optional[str] = None) -> None:
        """
        Replace the user's PIN
        
        Raises:
            InvalidPin: new PIN has the wrong format or does not match its confirmation
            IncorrectPin: old PIN did not verify
        """
        self.validate_pin_format(new_pin)
        if confirm_pin is not None and confirm_pin != new_pin:
            raise InvalidPin("New PINs do not match.")
        self.users.change_pin(user_id, old_pin, new_pin)
    
    def transactions(self, user_id: str) -> List[Transaction]:
        """The user's ledger history, newest first"""
        return self.processor.get_account_transactions(self._account_of(user_id).account_number)
