"""
Statement Export Module

Builds account statements for an inclusive date range and exports them
as a dict, JSON or CSV document.
"""

import csv
import io
import json
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .accounts import AccountManager
from .users import UserManager
from .ledger import Transaction, TransactionLedger
from .audit import AuditTrail, AuditEventType
from .currency import Money
from .errors import AccountNotFound
from .config import get_config


CSV_HEADERS = ["Date", "Description", "Type", "Debit (-)", "Credit (+)"]


class StatementFormat(Enum):
    DICT = "dict"
    JSON = "json"
    CSV = "csv"


@dataclass
class Statement:
    """
    Transactions of one account over a date range

    ``final_balance`` is the live balance at generation time, as printed in
    the statement's last row. ``closing_balance`` is the ledger total as of
    the end of ``end_date``.
    """
    holder_name: str
    account_number: str
    start_date: date
    end_date: date
    generated_at: datetime
    transactions: List[Transaction]
    final_balance: Money
    closing_balance: Money
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def filename_stem(self) -> str:
        return f"statement_{self.account_number}_{self.generated_at.date().isoformat()}"


class StatementGenerator:
    """Generates and exports account statements"""

    def __init__(
        self,
        ledger: TransactionLedger,
        account_manager: AccountManager,
        user_manager: UserManager,
        audit_trail: AuditTrail
    ):
        self.ledger = ledger
        self.account_manager = account_manager
        self.user_manager = user_manager
        self.audit_trail = audit_trail

    def generate(self, account_number: str, start_date: date, end_date: date,
                 user_id: Optional[str] = None) -> Statement:
        """
        Build a statement

        Args:
            account_number: Account to report on
            start_date: First day included
            end_date: Last day included
            user_id: Requesting user, for the audit trail

        Raises:
            AccountNotFound: no such account
            ValueError: start_date is after end_date
        """
        account = self.account_manager.get_account_by_number(account_number)
        if not account:
            raise AccountNotFound()
        owner = self.user_manager.find_by_id(account.user_id)

        transactions = self.ledger.list_by_account_between(account_number, start_date, end_date)
        period_end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)

        statement = Statement(
            holder_name=owner.name if owner else "",
            account_number=account_number,
            start_date=start_date,
            end_date=end_date,
            generated_at=datetime.now(timezone.utc),
            transactions=transactions,
            final_balance=account.balance,
            closing_balance=self.ledger.calculate_balance(account_number, as_of=period_end)
        )

        self.audit_trail.log_event(
            event_type=AuditEventType.STATEMENT_GENERATED,
            entity_type="account",
            entity_id=account_number,
            metadata={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "transactions": len(transactions)
            },
            user_id=user_id
        )
        return statement

    def export_statement(self, statement: Statement,
                         format: StatementFormat) -> Union[Dict, str]:
        """
        Export statement in specified format
        """
        if format == StatementFormat.DICT:
            return {
                'account_holder': statement.holder_name,
                'account_number': statement.account_number,
                'period_start': statement.start_date.isoformat(),
                'period_end': statement.end_date.isoformat(),
                'generated_at': statement.generated_at.isoformat(),
                'transactions': [self._row(t) for t in statement.transactions],
                'closing_balance': str(statement.closing_balance.amount),
                'final_balance': str(statement.final_balance.amount)
            }

        elif format == StatementFormat.JSON:
            return json.dumps(self.export_statement(statement, StatementFormat.DICT), indent=2)

        elif format == StatementFormat.CSV:
            symbol = get_config().currency_symbol
            output = io.StringIO()
            writer = csv.writer(output)

            writer.writerow(["Account Statement"])
            writer.writerow(["Account Holder", statement.holder_name])
            writer.writerow(["Account Number", statement.account_number])
            writer.writerow(["Statement Period",
                             f"{statement.start_date.isoformat()} to {statement.end_date.isoformat()}"])
            writer.writerow(["Generated On", statement.generated_at.date().isoformat()])
            writer.writerow([])

            dict_writer = csv.DictWriter(output, fieldnames=CSV_HEADERS)
            dict_writer.writeheader()
            for transaction in statement.transactions:
                dict_writer.writerow(self._csv_row(transaction, symbol))
            writer.writerow(["", "Final Balance", "", "",
                             statement.final_balance.to_string(symbol)])

            csv_content = output.getvalue()
            output.close()
            return csv_content

        else:
            raise ValueError(f"Unsupported export format: {format}")

    def filename(self, statement: Statement, format: StatementFormat) -> str:
        return f"{statement.filename_stem}.{format.value}"

    def _row(self, transaction: Transaction) -> Dict[str, Any]:
        return {
            'id': transaction.id,
            'date': transaction.timestamp.isoformat(),
            'description': transaction.description,
            'type': transaction.kind.value,
            'amount': str(transaction.amount.amount),
            'signed_amount': str(transaction.signed_amount.amount)
        }

    def _csv_row(self, transaction: Transaction, symbol: str) -> Dict[str, str]:
        amount = transaction.amount.to_string(symbol)
        return {
            "Date": transaction.timestamp.date().isoformat(),
            "Description": transaction.description,
            "Type": transaction.kind.value,
            "Debit (-)": amount if transaction.kind.is_debit else "",
            "Credit (+)": "" if transaction.kind.is_debit else amount,
        }
