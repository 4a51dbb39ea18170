"""
Administrator endpoints
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from .auth import BankingSystem, get_banking_system, require_admin
from .schemas import TransactionModel, TransactionListResponse
from ..session import CurrentUser


router = APIRouter()


@router.get("/customers")
async def list_customers(
    search: Optional[str] = None,
    admin: CurrentUser = Depends(require_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """List customers with their accounts, optionally filtered"""
    customers = system.reporting.customer_accounts(search)
    return {
        "customers": [c.to_dict() for c in customers],
        "count": len(customers)
    }


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    search: Optional[str] = None,
    admin: CurrentUser = Depends(require_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """List every transaction, newest first, optionally filtered"""
    transactions = system.reporting.all_transactions(search)
    return TransactionListResponse(
        transactions=[TransactionModel.from_transaction(t) for t in transactions],
        count=len(transactions)
    )


@router.get("/stats")
async def transaction_stats(
    admin: CurrentUser = Depends(require_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """Total inflow, outflow and transaction count"""
    return system.reporting.transaction_stats().to_dict()


@router.get("/export")
async def export_data(
    admin: CurrentUser = Depends(require_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """Export users, accounts and transactions"""
    return system.snapshots.export_data()


@router.post("/import")
async def import_data(
    data: Dict[str, Any] = Body(...),
    admin: CurrentUser = Depends(require_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """Replace users, accounts and transactions with an uploaded snapshot"""
    counts = system.snapshots.import_data(data)
    return {"imported": counts, "message": "Data imported successfully"}


@router.get("/audit/verify")
async def verify_audit_trail(
    admin: CurrentUser = Depends(require_admin),
    system: BankingSystem = Depends(get_banking_system)
):
    """Verify the audit trail hash chain"""
    return system.audit_trail.verify_integrity()
