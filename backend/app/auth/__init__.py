"""Caller identification utilities."""

from app.auth.user_token import generate_user_token, validate_user_token
from app.auth.dependencies import get_current_user_token, get_optional_user_token

__all__ = [
    "generate_user_token",
    "validate_user_token",
    "get_current_user_token",
    "get_optional_user_token",
]
