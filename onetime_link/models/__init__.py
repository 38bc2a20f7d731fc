"""Convenience imports for Alembic metadata discovery."""

from onetime_link.models.link_token import LinkToken
from onetime_link.models.user import User

__all__ = ["LinkToken", "User"]
