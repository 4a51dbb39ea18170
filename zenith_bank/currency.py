"""
Money Module

Two-decimal currency amounts backed by Decimal. NEVER uses float for
monetary values; floats handed in are converted through their string form.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Union

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union["Money", Decimal, int, float, str]


def quantize(amount: Decimal) -> Decimal:
    """Round to cents with ROUND_HALF_UP"""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation in the ledger's single currency.
    The amount is always held at two decimal places.
    """
    amount: Decimal
    
    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        object.__setattr__(self, 'amount', quantize(self.amount))
    
    def __add__(self, other: 'Money') -> 'Money':
        return Money(self.amount + other.amount)
    
    def __sub__(self, other: 'Money') -> 'Money':
        return Money(self.amount - other.amount)
    
    def __neg__(self) -> 'Money':
        return Money(-self.amount)
    
    def __lt__(self, other: 'Money') -> bool:
        return self.amount < other.amount
    
    def __le__(self, other: 'Money') -> bool:
        return self.amount <= other.amount
    
    def __gt__(self, other: 'Money') -> bool:
        return self.amount > other.amount
    
    def __ge__(self, other: 'Money') -> bool:
        return self.amount >= other.amount
    
    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == ZERO
    
    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > ZERO
    
    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < ZERO
    
    def to_string(self, symbol: str = "$") -> str:
        """Format for display, e.g. $100.00"""
        if self.is_negative():
            return f"-{symbol}{-self.amount:.2f}"
        return f"{symbol}{self.amount:.2f}"
    
    def __str__(self) -> str:
        return self.to_string()
    
    @classmethod
    def zero(cls) -> 'Money':
        return cls(ZERO)


def to_money(value: AmountLike) -> Money:
    """
    Coerce user input into Money.
    
    Raises:
        InvalidAmount: value is not a finite number
    """
    if isinstance(value, Money):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidAmount("Amount must be a number.")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount("Amount must be a number.")
    if not amount.is_finite():
        raise InvalidAmount("Amount must be a number.")
    return Money(amount)


def positive_money(value: AmountLike) -> Money:
    """Coerce to Money and require it to be greater than zero after rounding"""
    money = to_money(value)
    if not money.is_positive():
        raise InvalidAmount()
    return money
