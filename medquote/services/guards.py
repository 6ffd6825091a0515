"""Role and ownership checks shared by the services."""

import uuid
from typing import Optional

from medquote.errors import forbidden
from medquote.models.user import User


def check_role(user: User, *allowed_roles: str, message: str):
    if user.role not in allowed_roles:
        raise forbidden(message)


def check_verified(user: User, message: str = "Your account must be verified first"):
    if not user.verified:
        raise forbidden(message)


def check_owner(owner_id: Optional[uuid.UUID], user: User, message: str):
    if owner_id != user.id:
        raise forbidden(message)
