"""
Administrative Reporting Module

Read-only views for the administrator: customers with their accounts,
the full transaction log, and inflow/outflow totals.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .users import User, UserManager, UserRole
from .accounts import Account, AccountManager
from .ledger import Transaction, TransactionLedger
from .currency import Money


@dataclass
class CustomerAccount:
    user: User
    account: Optional[Account]

    def to_dict(self) -> Dict[str, Any]:
        result = self.user.to_public_dict()
        result["account_number"] = self.account.account_number if self.account else None
        result["balance"] = str(self.account.balance.amount) if self.account else None
        return result


@dataclass
class TransactionStats:
    total_inflow: Money
    total_outflow: Money
    total_transactions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_inflow": str(self.total_inflow.amount),
            "total_outflow": str(self.total_outflow.amount),
            "total_transactions": self.total_transactions,
        }


class AdminReporting:
    """Customer and transaction reporting across all accounts"""

    def __init__(self, user_manager: UserManager, account_manager: AccountManager,
                 ledger: TransactionLedger):
        self.user_manager = user_manager
        self.account_manager = account_manager
        self.ledger = ledger

    def customer_accounts(self, search: Optional[str] = None) -> List[CustomerAccount]:
        """
        Regular users paired with their accounts

        ``search`` matches name or email case-insensitively, or any part of
        the account number.
        """
        accounts = {a.user_id: a for a in self.account_manager.list_accounts()}
        customers = [
            CustomerAccount(user=user, account=accounts.get(user.id))
            for user in self.user_manager.list_users(role=UserRole.USER)
        ]
        if not search:
            return customers

        term = search.lower()
        return [
            c for c in customers
            if term in c.user.name.lower()
            or term in c.user.email.lower()
            or (c.account is not None and search in c.account.account_number)
        ]

    def all_transactions(self, search: Optional[str] = None) -> List[Transaction]:
        """
        Every ledger record, newest first

        ``search`` matches any part of the account number, or the type or
        description case-insensitively.
        """
        transactions = self.ledger.list_all()
        if not search:
            return transactions

        term = search.lower()
        return [
            t for t in transactions
            if search in t.account_number
            or term in t.kind.value.lower()
            or term in t.description.lower()
        ]

    def transaction_stats(self) -> TransactionStats:
        inflow = Money.zero()
        outflow = Money.zero()
        transactions = self.ledger.list_all()
        for transaction in transactions:
            if transaction.kind.is_debit:
                outflow = outflow + transaction.amount
            else:
                inflow = inflow + transaction.amount
        return TransactionStats(
            total_inflow=inflow,
            total_outflow=outflow,
            total_transactions=len(transactions)
        )
