"""Social platform credential models.

Stores the OAuth token set and account metadata for one user-platform
pair. One credential per user per platform, and one local owner per
external account.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON, UniqueConstraint
from sqlmodel import Field, SQLModel

from publisher.db.custom_types import UTCDateTime
from publisher.db.models.base import UUIDModel, TimestampMixin


class SocialPlatform(str, Enum):
    """Supported social media platforms."""

    facebook = "facebook"
    instagram = "instagram"
    twitter = "twitter"
    tiktok = "tiktok"
    amazon = "amazon"


class Credential(UUIDModel, TimestampMixin, table=True):
    """OAuth credential for a connected platform account.

    access_token may be null after a platform revokes it; such rows are
    kept for re-auth but never treated as active.
    """

    __tablename__ = "credentials"
    __table_args__ = (
        UniqueConstraint("user_id", "platform", name="uq_credentials_user_platform"),
        UniqueConstraint(
            "platform", "external_account_id", name="uq_credentials_platform_account"
        ),
    )

    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    platform: SocialPlatform = Field(nullable=False)
    external_account_id: str = Field(nullable=False)  # Page id, X user id, etc.

    access_token: Optional[str] = Field(default=None)
    access_token_secret: Optional[str] = Field(default=None)  # OAuth 1.0a
    refresh_token: Optional[str] = Field(default=None)
    expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)  # None = non-expiring

    scopes: Optional[str] = Field(default=None)  # Comma-separated
    username: Optional[str] = Field(default=None)
    account_name: Optional[str] = Field(default=None)
    account_metadata: dict = Field(default_factory=dict, sa_type=JSON)

    @property
    def scope_list(self) -> list[str]:
        if not self.scopes:
            return []
        return [scope.strip() for scope in self.scopes.split(",") if scope.strip()]


class CredentialData(SQLModel):
    """Token set and account info delivered by an OAuth callback."""

    external_account_id: str
    access_token: Optional[str] = None
    access_token_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: list[str] = Field(default_factory=list)
    username: Optional[str] = None
    account_name: Optional[str] = None
    account_metadata: dict[str, Any] = Field(default_factory=dict)


class CredentialRead(SQLModel):
    """Read schema for a credential (no tokens exposed)."""

    id: UUID
    user_id: UUID
    platform: SocialPlatform
    external_account_id: str
    username: Optional[str]
    account_name: Optional[str]
    scopes: Optional[str]
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]
