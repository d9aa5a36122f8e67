"""
Social service: friend feed and good vibes.

Handles:
- Accepted friend lookup (either edge direction, Redis-cached)
- Friends' check-ins for today
- Sending good vibes and reading the inbox
"""

import logging
from typing import Optional
from uuid import UUID

from supabase import Client

from feelsy.core.cache import cache_get, cache_set
from feelsy.core.constants import (
    FRIEND_CACHE_TTL,
    FRIEND_STATUS_ACCEPTED,
    VIBES_DEFAULT_LIMIT,
    VIBES_MAX_LIMIT,
)
from feelsy.core.database import get_supabase
from feelsy.core.posthog import capture
from feelsy.core.redis import FeelKeys
from feelsy.models.social import (
    FriendFeel,
    GoodVibe,
    InvalidVibeTypeError,
    ReceivedVibe,
    ReceiverNotFoundError,
    SelfVibeError,
    VibeType,
)
from feelsy.services.checkin_service import current_check_date
from feelsy.services.user_service import UserService

logger = logging.getLogger(__name__)


class SocialService:
    """Service for the friend feed and good vibes."""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        user_service: Optional[UserService] = None,
    ):
        self._supabase = supabase
        self._user_service = user_service

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    @property
    def user_service(self) -> UserService:
        if self._user_service is None:
            self._user_service = UserService(supabase=self.supabase)
        return self._user_service

    # =========================================================================
    # Friends
    # =========================================================================

    def get_friend_ids(self, user_id: str) -> set[str]:
        """
        Accepted friend IDs, read from Redis when cached.

        Edges are undirected: the user may sit on either side of feel_friends.
        """
        cache_key = FeelKeys.accepted_friends(user_id)
        cached = cache_get(cache_key)
        if cached is not None:
            return set(cached)

        result = (
            self.supabase.table("feel_friends")
            .select("user_id, friend_id")
            .or_(f"user_id.eq.{user_id},friend_id.eq.{user_id}")
            .eq("status", FRIEND_STATUS_ACCEPTED)
            .is_("deleted_at", "null")
            .execute()
        )

        friend_ids: set[str] = set()
        for row in result.data or []:
            other_id = row["friend_id"] if row["user_id"] == user_id else row["user_id"]
            if other_id != user_id:
                friend_ids.add(other_id)

        cache_set(cache_key, sorted(friend_ids), ttl=FRIEND_CACHE_TTL)
        return friend_ids

    def get_friend_feels(self, user_id: str) -> list[FriendFeel]:
        """Today's check-ins of accepted friends. Friends without one are omitted."""
        friend_ids = self.get_friend_ids(user_id)
        if not friend_ids:
            return []

        today = current_check_date()
        result = (
            self.supabase.table("feel_checks")
            .select("user_id, feel_score, mood_emoji, color_hex, check_date")
            .in_("user_id", sorted(friend_ids))
            .eq("check_date", today.isoformat())
            .is_("deleted_at", "null")
            .execute()
        )
        rows = result.data or []
        if not rows:
            return []

        identities = self.user_service.get_public_identities(row["user_id"] for row in rows)

        feels = []
        for row in rows:
            identity = identities.get(row["user_id"])
            if identity is None:
                continue
            feels.append(
                FriendFeel(
                    user_id=row["user_id"],
                    email=identity.email,
                    feel_score=row["feel_score"],
                    mood_emoji=row.get("mood_emoji") or "",
                    color_hex=row["color_hex"],
                    check_date=row["check_date"],
                )
            )
        return feels

    # =========================================================================
    # Good vibes
    # =========================================================================

    def send_good_vibe(
        self, sender_id: str, receiver_id: str, message: str, vibe_type: str
    ) -> GoodVibe:
        """
        Send a good vibe. No friendship is required.

        Raises:
            SelfVibeError: sender and receiver are the same user
            InvalidVibeTypeError: vibe_type is not a known VibeType
            ReceiverNotFoundError: receiver_id is malformed or has no active account
        """
        try:
            receiver_id = str(UUID(str(receiver_id)))
        except ValueError as e:
            raise ReceiverNotFoundError(f"Receiver {receiver_id} is not a valid user id") from e

        # Compare canonical forms: Postgres treats UUIDs case-insensitively
        if receiver_id == str(UUID(str(sender_id))):
            raise SelfVibeError("Cannot send vibes to yourself")

        try:
            kind = VibeType(vibe_type)
        except ValueError as e:
            raise InvalidVibeTypeError(str(vibe_type)) from e

        if self.user_service.get_user_by_id(receiver_id) is None:
            raise ReceiverNotFoundError(f"Receiver {receiver_id} not found")

        result = (
            self.supabase.table("good_vibes")
            .insert(
                {
                    "sender_id": sender_id,
                    "receiver_id": receiver_id,
                    "message": message or "",
                    "vibe_type": kind.value,
                }
            )
            .execute()
        )

        vibe = GoodVibe(**result.data[0])
        logger.info("Good vibe %s sent from %s to %s", vibe.id, sender_id, receiver_id)
        capture(sender_id, "good_vibe_sent", {"vibe_type": kind.value})
        return vibe

    def get_received_vibes(
        self, user_id: str, limit: int = VIBES_DEFAULT_LIMIT
    ) -> list[ReceivedVibe]:
        """Vibes received by the user, newest first, with sender identity attached."""
        limit = max(1, min(limit, VIBES_MAX_LIMIT))

        result = (
            self.supabase.table("good_vibes")
            .select("*")
            .eq("receiver_id", user_id)
            .is_("deleted_at", "null")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        rows = result.data or []

        senders = self.user_service.get_public_identities(row["sender_id"] for row in rows)
        return [ReceivedVibe(**row, sender=senders.get(row["sender_id"])) for row in rows]
