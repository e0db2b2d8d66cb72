"""User directory — resolves a caller identity to an Actor (user name + admin flag)."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select

from lpms.core.exceptions import InvalidArgumentError, NotFoundError
from lpms.models import db
from lpms.models.auth import User
from lpms.services.helpers.transaction import atomic, reading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    user_name: str
    is_admin: bool = False


class UserDirectory:
    def get(self, user_name: str) -> Actor:
        """Look up a caller. Raises NotFoundError for unknown identities."""
        with reading("get_user", user_name=user_name):
            user = db.session.execute(
                select(User).where(User.user_name == user_name)
            ).scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", user_name)
        return Actor(user_name=user.user_name, is_admin=bool(user.is_admin))

    def upsert(self, user_name: str, *, is_admin: bool = False, display_name: str | None = None) -> User:
        """Create or update a user row. Used by the ``create-user`` CLI command and tests."""
        user_name = (user_name or "").strip()
        if not user_name:
            raise InvalidArgumentError("user_name is required")
        with atomic("upsert_user", user_name=user_name):
            user = db.session.execute(
                select(User).where(User.user_name == user_name)
            ).scalar_one_or_none()
            if user is None:
                user = User(user_name=user_name)
                db.session.add(user)
            user.is_admin = is_admin
            if display_name is not None:
                user.display_name = display_name
        logger.info("User saved user_name=%s is_admin=%s", user_name, is_admin)
        return user
