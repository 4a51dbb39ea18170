"""
Registration, login and logout endpoints
"""

from fastapi import APIRouter, Depends

from .auth import BankingSystem, get_banking_system, get_current_user, create_access_token
from .schemas import RegisterRequest, LoginRequest, TokenResponse
from ..session import CurrentUser
from ..logging_config import get_logger, log_action


router = APIRouter()
logger = get_logger("zenith.api")


def _token_response(current: CurrentUser) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(current),
        user_id=current.id,
        role=current.user.role.value,
        account_number=current.account.account_number if current.account else None
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    request: RegisterRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Register a user, open their account and sign them in"""
    current = system.gateway.register(
        request.name, request.email, request.password, request.pin, remember=False
    )
    return _token_response(current)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    system: BankingSystem = Depends(get_banking_system)
):
    """Authenticate user and return JWT token"""
    current = system.gateway.login(request.email, request.password, remember=False)
    return _token_response(current)


@router.post("/logout")
async def logout(current: CurrentUser = Depends(get_current_user)):
    """Logout user; the client discards its token"""
    log_action(logger, "info", "User signed out",
               user_id=current.id, action="logout", resource="auth")
    return {"message": "Logged out"}
