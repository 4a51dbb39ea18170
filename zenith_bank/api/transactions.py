"""
Transaction endpoints
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from .auth import BankingSystem, get_banking_system, require_customer
from .schemas import (
    DepositRequest, WithdrawRequest, TransferRequest,
    TransactionModel, TransferResponse, TransactionListResponse
)
from ..session import CurrentUser
from ..statements import StatementFormat


router = APIRouter()


def _balance(system: BankingSystem, current: CurrentUser) -> str:
    account = system.account_manager.get_account_by_user(current.id)
    return str(account.balance.amount)


@router.post("/deposit")
async def deposit(
    request: DepositRequest,
    current: CurrentUser = Depends(require_customer),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a deposit"""
    transaction = system.gateway.deposit(current.id, request.amount)
    return {
        "transaction": TransactionModel.from_transaction(transaction),
        "balance": _balance(system, current),
        "message": "Deposit processed successfully"
    }


@router.post("/withdraw")
async def withdraw(
    request: WithdrawRequest,
    current: CurrentUser = Depends(require_customer),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a PIN-verified withdrawal"""
    transaction = system.gateway.withdraw(current.id, request.pin, request.amount)
    return {
        "transaction": TransactionModel.from_transaction(transaction),
        "balance": _balance(system, current),
        "message": "Withdrawal processed successfully"
    }


@router.post("/transfer", response_model=TransferResponse)
async def transfer(
    request: TransferRequest,
    current: CurrentUser = Depends(require_customer),
    system: BankingSystem = Depends(get_banking_system)
):
    """Make a PIN-verified transfer to another account"""
    result = system.gateway.transfer(
        current.id, request.pin, request.to_account_number, request.amount
    )
    return TransferResponse(
        debit=TransactionModel.from_transaction(result.debit),
        credit=TransactionModel.from_transaction(result.credit),
        balance=_balance(system, current)
    )


@router.get("/history", response_model=TransactionListResponse)
async def history(
    current: CurrentUser = Depends(require_customer),
    system: BankingSystem = Depends(get_banking_system)
):
    """Get the signed-in user's transactions, newest first"""
    transactions = system.gateway.transactions(current.id)
    return TransactionListResponse(
        transactions=[TransactionModel.from_transaction(t) for t in transactions],
        count=len(transactions)
    )


@router.get("/statement")
async def statement(
    start_date: date,
    end_date: date,
    format: StatementFormat = Query(StatementFormat.CSV),
    current: CurrentUser = Depends(require_customer),
    system: BankingSystem = Depends(get_banking_system)
):
    """Export an account statement for an inclusive date range"""
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="Start date must not be after end date")
    
    result = system.statements.generate(
        current.account.account_number, start_date, end_date, user_id=current.id
    )
    
    if format == StatementFormat.DICT:
        return system.statements.export_statement(result, format)
    
    media_type = "text/csv" if format == StatementFormat.CSV else "application/json"
    filename = system.statements.filename(result, format)
    return Response(
        content=system.statements.export_statement(result, format),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
