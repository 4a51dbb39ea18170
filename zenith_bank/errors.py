"""
Banking error kinds

Every failure a caller can observe from the ledger, credential and
session layers. All are local and synchronous; none is retried.
"""


class BankingError(ValueError):
    """Base class for all user-facing banking failures"""
    
    default_message = "Banking operation failed."
    
    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
    
    @property
    def message(self) -> str:
        return self.args[0]


class DuplicateEmail(BankingError):
    default_message = "An account with this email already exists."


class InvalidCredentials(BankingError):
    default_message = "Invalid email or password."


class IncorrectPin(BankingError):
    default_message = "Incorrect PIN."


class InvalidPin(BankingError):
    """PIN rejected for its format before any verification"""
    default_message = "PIN must be exactly 4 digits."


class AccountNotFound(BankingError):
    default_message = "Invalid account number."


class InsufficientFunds(BankingError):
    default_message = "Insufficient funds."


class InvalidAmount(BankingError):
    default_message = "Amount must be positive."


class SameAccount(BankingError):
    default_message = "Cannot transfer to the same account."


class AccountCreationFailed(BankingError):
    default_message = "Failed to create an account during registration."


class InvalidDataFile(BankingError):
    default_message = "Invalid data file. Missing required fields."
