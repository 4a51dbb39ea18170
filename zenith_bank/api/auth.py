"""
Authentication and authorization dependencies
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..system import BankingSystem
from ..session import CurrentUser
from ..config import get_config


security = HTTPBearer(auto_error=False)

# Created on first use so importing the API does not open a database
_banking_system: Optional[BankingSystem] = None


def get_banking_system() -> BankingSystem:
    """Dependency returning the process-wide banking system"""
    global _banking_system
    if _banking_system is None:
        _banking_system = BankingSystem()
    return _banking_system


def create_access_token(current: CurrentUser) -> str:
    """Sign a bearer token for a resolved user"""
    config = get_config()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": current.id,
        "role": current.user.role.value,
        "iat": now,
        "exp": now + timedelta(hours=config.jwt_expiry_hours)
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> CurrentUser:
    """Dependency that validates the bearer token and resolves its user"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    
    config = get_config()
    try:
        payload = jwt.decode(credentials.credentials, config.jwt_secret,
                             algorithms=[config.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    
    user_id = payload.get("sub")
    current = system.gateway.resolve_user(user_id) if user_id else None
    if current is None:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return current


def require_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return current


def require_customer(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Regular users only; the administrator has no account to operate"""
    if current.account is None:
        raise HTTPException(status_code=403, detail="Customer account required")
    return current
