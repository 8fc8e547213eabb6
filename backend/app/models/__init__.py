"""SQLAlchemy ORM models for the magic-link auth service.

All models are exported from this module for convenient imports:
    from app.models import User, MagicToken, MigratedRecord

Models are organized by domain:
- user.py: User (identity)
- magic_token.py: MagicToken, TokenState (single-use sign-in tokens)
- migrated_record.py: MigratedRecord (imported data awaiting a claim)
"""

from app.models.base import Base, TimestampMixin
from app.models.magic_token import MagicToken, TokenState
from app.models.migrated_record import MigratedRecord
from app.models.user import User

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Identity
    "User",
    # Tokens
    "MagicToken",
    "TokenState",
    # Claimable data
    "MigratedRecord",
]
