"""
Zenith Bank API Application Factory
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .sessions import router as sessions_router
from .users import router as users_router
from .transactions import router as transactions_router
from .admin import router as admin_router
from .. import __version__
from ..errors import (
    BankingError, DuplicateEmail, InvalidCredentials, IncorrectPin,
    AccountNotFound, InsufficientFunds
)
from ..logging_config import setup_logging, get_logger, log_action


ERROR_STATUS = {
    InvalidCredentials: 401,
    IncorrectPin: 403,
    AccountNotFound: 404,
    DuplicateEmail: 409,
    InsufficientFunds: 409,
}

logger = get_logger("zenith.api")


def error_status(error: BankingError) -> int:
    """HTTP status for a banking error; anything unlisted is a 400"""
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 400


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Zenith Bank API",
        description="Personal banking ledger with PIN-gated transfers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    @app.exception_handler(BankingError)
    async def banking_error_handler(request: Request, exc: BankingError):
        status = error_status(exc)
        log_action(logger, "warning", f"Request failed: {exc.message}",
                   action=request.url.path, resource="api",
                   extra={"error": type(exc).__name__, "status": status})
        return JSONResponse(
            status_code=status,
            content={"detail": exc.message, "error": type(exc).__name__}
        )
    
    app.include_router(sessions_router, prefix="/auth", tags=["Auth"])
    app.include_router(users_router, prefix="/users", tags=["Users"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "zenith_bank_api",
            "version": __version__
        }
    
    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the API server"""
    setup_logging("DEBUG" if debug else None)
    uvicorn.run(
        "zenith_bank.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="debug" if debug else "info"
    )
