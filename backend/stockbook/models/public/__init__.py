"""Shared models (not owned by a single client)."""

from stockbook.models.public.client import Client
from stockbook.models.public.user import User, UserRole

__all__ = ["Client", "User", "UserRole"]
