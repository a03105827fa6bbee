"""
SQLAlchemy ORM models package.

All models are imported here so that Base.metadata knows every table
before create_all() runs, and so other modules can import from
app.models directly.
"""

from app.models.user import User, UserRole  # noqa: F401
from app.models.account import Account, AccountBalance  # noqa: F401
from app.models.transaction import Transaction, TransactionType  # noqa: F401
