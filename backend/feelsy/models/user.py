"""
Pydantic models for user identity.

Accounts are owned by the auth layer; this core only reads them.

Models:
- UserIdentity: the authenticated caller, resolved from the JWT subject
- PublicIdentity: fields other users may see
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserIdentity(BaseModel):
    """Internal user record for the authenticated caller."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    auth_id: str
    email: str
    deleted_at: Optional[datetime] = None


class PublicIdentity(BaseModel):
    """Identity visible to other users (friend feed, vibe sender)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
