"""
Signed-in user endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_user, require_customer
from .schemas import ChangePinRequest
from ..session import CurrentUser


router = APIRouter()


@router.get("/me")
async def get_me(current: CurrentUser = Depends(get_current_user)):
    """Get the signed-in user and their account"""
    return current.to_dict()


@router.post("/me/pin")
async def change_pin(
    request: ChangePinRequest,
    current: CurrentUser = Depends(require_customer),
    system: BankingSystem = Depends(get_banking_system)
):
    """Change the transaction PIN"""
    system.gateway.change_pin(current.id, request.old_pin, request.new_pin, request.confirm_pin)
    return {"message": "PIN changed successfully"}
