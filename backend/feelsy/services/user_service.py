"""
User identity lookups.

Accounts are created and owned by the auth layer. This service only resolves
the authenticated caller to an internal user row and fetches the public
identities shown to other users.
"""

import logging
from typing import Iterable, Optional

from supabase import Client

from feelsy.core.database import get_supabase
from feelsy.models.user import PublicIdentity, UserIdentity

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    """Base exception for user service errors."""

    pass


class UserNotFoundError(UserServiceError):
    """User not found."""

    pass


class UserService:
    """Service for user identity operations."""

    def __init__(self, supabase: Optional[Client] = None):
        self._supabase = supabase

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    def get_user_by_auth_id(self, auth_id: str) -> Optional[UserIdentity]:
        """
        Resolve an auth subject to the internal user.

        Soft-deleted users are treated as missing.
        """
        result = (
            self.supabase.table("users")
            .select("id, auth_id, email, deleted_at")
            .eq("auth_id", auth_id)
            .is_("deleted_at", "null")
            .execute()
        )

        if not result.data:
            return None

        return UserIdentity(**result.data[0])

    def get_user_by_id(self, user_id: str) -> Optional[UserIdentity]:
        """Fetch a live user by internal id."""
        result = (
            self.supabase.table("users")
            .select("id, auth_id, email, deleted_at")
            .eq("id", user_id)
            .is_("deleted_at", "null")
            .execute()
        )

        if not result.data:
            return None

        return UserIdentity(**result.data[0])

    def get_public_identities(self, user_ids: Iterable[str]) -> dict[str, PublicIdentity]:
        """Batch-fetch public identities keyed by user id; deleted users are omitted."""
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}

        result = (
            self.supabase.table("users")
            .select("id, email")
            .in_("id", ids)
            .is_("deleted_at", "null")
            .execute()
        )

        return {row["id"]: PublicIdentity(**row) for row in result.data or []}
