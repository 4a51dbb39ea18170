"""
Pydantic schemas for API requests and responses
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from ..ledger import Transaction


# Session schemas
class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    pin: str = Field(..., description="4-digit transaction PIN")


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str
    account_number: Optional[str] = None


# Money movement schemas
class DepositRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class WithdrawRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    pin: str


class TransferRequest(BaseModel):
    to_account_number: str
    amount: str = Field(..., description="Decimal amount as string")
    pin: str


class ChangePinRequest(BaseModel):
    old_pin: str
    new_pin: str
    confirm_pin: Optional[str] = None


class TransactionModel(BaseModel):
    id: str
    account_number: str
    type: str
    amount: str
    timestamp: str
    description: str
    
    @classmethod
    def from_transaction(cls, transaction: Transaction) -> 'TransactionModel':
        return cls(
            id=transaction.id,
            account_number=transaction.account_number,
            type=transaction.kind.value,
            amount=str(transaction.amount.amount),
            timestamp=transaction.timestamp.isoformat(),
            description=transaction.description
        )


class TransferResponse(BaseModel):
    debit: TransactionModel
    credit: TransactionModel
    balance: str


class TransactionListResponse(BaseModel):
    transactions: List[TransactionModel]
    count: int
