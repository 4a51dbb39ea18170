"""
Data Import/Export Module

Moves the complete user, account and transaction collections in and out
of the system as one JSON document:

    {"users": [{id, name, email, passwordHash, pinHash, role}],
     "accounts": [{accountNumber, userId, balance}],
     "transactions": [{id, accountId, type, amount, timestamp, description}]}

Imports are validated in full before anything is written and then applied
inside one atomic scope, so a rejected file leaves the store untouched.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .storage import StorageInterface
from .audit import AuditTrail, AuditEventType
from .users import User, UserManager, UserRole, ADMIN_USER_ID
from .accounts import Account, AccountManager
from .ledger import Transaction, TransactionLedger, TransactionKind
from .currency import Money
from .credentials import is_well_formed
from .errors import InvalidDataFile
from .config import get_config
from .logging_config import get_logger, log_action


COLLECTIONS = ("users", "accounts", "transactions")


class UserRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    id: str = Field(..., min_length=1)
    name: str
    email: str = Field(..., min_length=1)
    password_hash: str = Field(..., alias="passwordHash")
    pin_hash: str = Field("", alias="pinHash")
    role: Literal["user", "admin"]
    
    @field_validator("password_hash", "pin_hash")
    @classmethod
    def _known_digest(cls, value: str) -> str:
        if not is_well_formed(value):
            raise ValueError("unrecognised credential digest")
        return value


class AccountRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    account_number: str = Field(..., alias="accountNumber", min_length=1)
    user_id: str = Field(..., alias="userId")
    balance: Decimal = Field(..., ge=0, allow_inf_nan=False)


class TransactionRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    id: str = Field(..., min_length=1)
    account_id: str = Field(..., alias="accountId")
    type: Literal["Deposit", "Withdrawal", "Transfer (Debit)", "Transfer (Credit)"]
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    timestamp: datetime
    description: str
    
    @field_validator("amount")
    @classmethod
    def _positive_in_cents(cls, value: Decimal) -> Decimal:
        if not Money(value).is_positive():
            raise ValueError("amount rounds to zero")
        return value


class Snapshot(BaseModel):
    users: List[UserRecord]
    accounts: List[AccountRecord]
    transactions: List[TransactionRecord]


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _iso(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a Z suffix"""
    return _as_utc(moment).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SnapshotManager:
    """
    Validated import and ordered export of the three ledger collections
    """
    
    def __init__(
        self,
        storage: StorageInterface,
        user_manager: UserManager,
        account_manager: AccountManager,
        ledger: TransactionLedger,
        audit_trail: AuditTrail
    ):
        self.storage = storage
        self.user_manager = user_manager
        self.account_manager = account_manager
        self.ledger = ledger
        self.audit_trail = audit_trail
        self.logger = get_logger("zenith.snapshot")
    
    def export_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """Every collection in insertion order, in the persisted layout"""
        data = {
            "users": [
                {
                    "id": user.id,
                    "name": user.name,
                    "email": user.email,
                    "passwordHash": user.password_hash,
                    "pinHash": user.pin_hash,
                    "role": user.role.value,
                }
                for user in self.user_manager.list_users()
            ],
            "accounts": [
                {
                    "accountNumber": account.account_number,
                    "userId": account.user_id,
                    "balance": str(account.balance.amount),
                }
                for account in self.account_manager.list_accounts()
            ],
            "transactions": [
                {
                    "id": transaction.id,
                    "accountId": transaction.account_number,
                    "type": transaction.kind.value,
                    "amount": str(transaction.amount.amount),
                    "timestamp": _iso(transaction.timestamp),
                    "description": transaction.description,
                }
                for transaction in self.ledger.list_all(newest_first=False)
            ],
        }
        
        self.audit_trail.log_event(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="system",
            entity_id="snapshot",
            metadata={name: len(data[name]) for name in COLLECTIONS}
        )
        return data
    
    def import_data(self, data: Any) -> Dict[str, int]:
        """
        Replace all users, accounts and transactions
        
        Args:
            data: Parsed snapshot document
            
        Returns:
            Number of records imported per collection
            
        Raises:
            InvalidDataFile: a collection is missing, a record is malformed,
                or the records do not reference each other consistently
        """
        snapshot = self._parse(data)
        self._check_references(snapshot)
        
        now = datetime.now(timezone.utc)
        users = [
            User(
                id=record.id,
                created_at=now,
                updated_at=now,
                name=record.name,
                email=record.email,
                password_hash=record.password_hash,
                pin_hash=record.pin_hash,
                role=UserRole(record.role)
            )
            for record in snapshot.users
        ]
        accounts = [
            Account(
                id=record.account_number,
                created_at=now,
                updated_at=now,
                user_id=record.user_id,
                balance=Money(record.balance)
            )
            for record in snapshot.accounts
        ]
        transactions = [
            Transaction(
                id=record.id,
                created_at=_as_utc(record.timestamp),
                updated_at=_as_utc(record.timestamp),
                account_number=record.account_id,
                kind=TransactionKind(record.type),
                amount=Money(record.amount),
                description=record.description
            )
            for record in snapshot.transactions
        ]
        
        with self.storage.atomic():
            self.user_manager.replace_all(users)
            self.account_manager.replace_all(accounts)
            self.ledger.replace_all(transactions)
            self.user_manager.ensure_admin()
            
            counts = {
                "users": len(users),
                "accounts": len(accounts),
                "transactions": len(transactions),
            }
            self.audit_trail.log_event(
                event_type=AuditEventType.DATA_IMPORTED,
                entity_type="system",
                entity_id="snapshot",
                metadata=counts
            )
        
        self._warn_on_balance_drift(accounts)
        log_action(self.logger, "info", "Snapshot imported",
                   action="import_data", resource="snapshot", extra=counts)
        return counts
    
    def export_json(self, path: Union[str, Path]) -> Path:
        """Write the export document to a UTF-8 JSON file"""
        path = Path(path)
        path.write_text(json.dumps(self.export_data(), indent=2), encoding="utf-8")
        return path
    
    def import_json(self, path: Union[str, Path]) -> Dict[str, int]:
        """Import a snapshot from a UTF-8 JSON file"""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidDataFile(f"Invalid data file. Could not parse JSON: {e.msg}.")
        return self.import_data(data)
    
    def _parse(self, data: Any) -> Snapshot:
        if not isinstance(data, dict) or any(
            not isinstance(data.get(name), list) for name in COLLECTIONS
        ):
            raise InvalidDataFile()
        try:
            return Snapshot.model_validate(data)
        except ValidationError as e:
            error = e.errors()[0]
            location = ".".join(str(part) for part in error["loc"])
            raise InvalidDataFile(f"Invalid data file. {location}: {error['msg']}.")
    
    def _check_references(self, snapshot: Snapshot) -> None:
        user_ids = set()
        emails = set()
        admins = 0
        for user in snapshot.users:
            if user.id in user_ids:
                raise InvalidDataFile(f"Invalid data file. Duplicate user id {user.id}.")
            if user.email in emails:
                raise InvalidDataFile(f"Invalid data file. Duplicate email {user.email}.")
            user_ids.add(user.id)
            emails.add(user.email)
            admins += user.role == UserRole.ADMIN.value
        
        if admins > 1:
            raise InvalidDataFile("Invalid data file. More than one administrator.")
        if admins == 0 and (ADMIN_USER_ID in user_ids or get_config().admin_email in emails):
            raise InvalidDataFile("Invalid data file. Administrator identity is taken by a regular user.")
        
        account_numbers = set()
        owners = set()
        for account in snapshot.accounts:
            if account.account_number in account_numbers:
                raise InvalidDataFile(
                    f"Invalid data file. Duplicate account number {account.account_number}.")
            if account.user_id not in user_ids:
                raise InvalidDataFile(
                    f"Invalid data file. Account {account.account_number} references unknown user.")
            if account.user_id in owners:
                raise InvalidDataFile(
                    f"Invalid data file. User {account.user_id} owns more than one account.")
            account_numbers.add(account.account_number)
            owners.add(account.user_id)
        
        transaction_ids = set()
        for transaction in snapshot.transactions:
            if transaction.id in transaction_ids:
                raise InvalidDataFile(f"Invalid data file. Duplicate transaction id {transaction.id}.")
            if transaction.account_id not in account_numbers:
                raise InvalidDataFile(
                    f"Invalid data file. Transaction {transaction.id} references unknown account.")
            transaction_ids.add(transaction.id)
    
    def _warn_on_balance_drift(self, accounts: List[Account]) -> None:
        """Imported balances are kept as given; report any that disagree with the ledger"""
        for account in accounts:
            derived = self.ledger.calculate_balance(account.account_number)
            if derived != account.balance:
                log_action(self.logger, "warning", "Imported balance differs from ledger total",
                           action="import_data", resource="account",
                           extra={"account_number": account.account_number,
                                  "balance": str(account.balance.amount),
                                  "ledger_total": str(derived.amount)})
