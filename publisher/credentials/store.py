"""Credential store for connected platform accounts.

Owns the upsert rules that decide whether an OAuth callback updates an
existing credential, transfers an external account to another local
user, or creates a new row.
"""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from publisher.db.models import (
    Credential,
    CredentialData,
    SocialPlatform,
    as_utc,
    utc_now,
)
from publisher.logging.structured import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Raised when a credential cannot be persisted."""


class CredentialStore:
    """Repository for Credential rows bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, user_id: UUID, platform: SocialPlatform) -> Optional[Credential]:
        statement = select(Credential).where(
            Credential.user_id == user_id,
            Credential.platform == platform,
        )
        return self.session.exec(statement).first()

    def get_by_external_account(
        self, platform: SocialPlatform, external_account_id: str
    ) -> Optional[Credential]:
        statement = select(Credential).where(
            Credential.platform == platform,
            Credential.external_account_id == external_account_id,
        )
        return self.session.exec(statement).first()

    def list_for_user(self, user_id: UUID) -> list[Credential]:
        statement = (
            select(Credential)
            .where(Credential.user_id == user_id)
            .order_by(col(Credential.created_at).desc())
        )
        return list(self.session.exec(statement).all())

    def find_active(
        self,
        user_id: UUID,
        platforms: Optional[Iterable[SocialPlatform]] = None,
    ) -> list[Credential]:
        """Credentials with a usable access token, newest first.

        A null expiry means the token does not expire.
        """
        now = utc_now()
        statement = select(Credential).where(
            Credential.user_id == user_id,
            col(Credential.access_token).is_not(None),
            or_(col(Credential.expires_at).is_(None), col(Credential.expires_at) > now),
        )
        if platforms is not None:
            statement = statement.where(col(Credential.platform).in_(list(platforms)))
        statement = statement.order_by(col(Credential.created_at).desc())
        return list(self.session.exec(statement).all())

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert(
        self, user_id: UUID, platform: SocialPlatform, data: CredentialData
    ) -> Credential:
        """Create or update the credential for (user_id, platform).

        Resolution order, first match wins:
        1. the user already has a credential for this platform: update it
        2. another user holds this external account: transfer it to user_id
        3. the exact (user, platform, account) row exists: update it
        4. otherwise create a new credential

        Args:
            user_id: Requesting local user
            platform: Platform the token set belongs to
            data: Tokens and account info from the OAuth callback

        Returns:
            The persisted credential

        Raises:
            DatabaseError: If a uniqueness race cannot be recovered
        """
        credential = self.get(user_id, platform)

        if credential is None:
            held = self.get_by_external_account(platform, data.external_account_id)
            if held is not None and held.user_id != user_id:
                logger.warning(
                    "credential_ownership_transferred",
                    platform=platform.value,
                    external_account_id=data.external_account_id,
                    from_user_id=str(held.user_id),
                    to_user_id=str(user_id),
                )
                held.user_id = user_id
                credential = held
            elif held is not None:
                credential = held

        created = credential is None
        if created:
            credential = Credential(
                user_id=user_id,
                platform=platform,
                external_account_id=data.external_account_id,
            )

        self._apply(credential, data)
        self.session.add(credential)

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return self._recover_upsert(user_id, platform, data)

        self.session.refresh(credential)
        logger.info(
            "credential_upserted",
            user_id=str(user_id),
            platform=platform.value,
            created=created,
        )
        return credential

    def _recover_upsert(
        self, user_id: UUID, platform: SocialPlatform, data: CredentialData
    ) -> Credential:
        """Update whichever row won a concurrent upsert race."""
        statement = select(Credential).where(
            or_(
                and_(
                    Credential.platform == platform,
                    Credential.external_account_id == data.external_account_id,
                ),
                and_(Credential.user_id == user_id, Credential.platform == platform),
            )
        )
        credential = self.session.exec(statement).first()
        if credential is None:
            logger.error(
                "credential_upsert_failed",
                user_id=str(user_id),
                platform=platform.value,
            )
            raise DatabaseError("Failed to save platform credential")

        credential.user_id = user_id
        self._apply(credential, data)
        self.session.add(credential)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DatabaseError("Failed to save platform credential") from e

        self.session.refresh(credential)
        logger.info(
            "credential_upsert_recovered",
            user_id=str(user_id),
            platform=platform.value,
        )
        return credential

    def update_tokens(
        self,
        credential_id: UUID,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
    ) -> Credential:
        """Persist a refreshed token set in a single update."""
        credential = self.session.get(Credential, credential_id)
        if credential is None:
            raise DatabaseError(f"Credential {credential_id} not found")

        credential.access_token = access_token
        if refresh_token is not None:
            credential.refresh_token = refresh_token
        credential.expires_at = as_utc(expires_at)
        self.session.add(credential)
        self.session.commit()
        self.session.refresh(credential)
        return credential

    def remove(self, user_id: UUID, platform: SocialPlatform) -> bool:
        """Delete the user's credential for a platform.

        Returns:
            True if a credential was deleted
        """
        credential = self.get(user_id, platform)
        if credential is None:
            return False
        self.session.delete(credential)
        self.session.commit()
        logger.info("credential_removed", user_id=str(user_id), platform=platform.value)
        return True

    @staticmethod
    def _apply(credential: Credential, data: CredentialData) -> None:
        credential.external_account_id = data.external_account_id
        credential.access_token = data.access_token
        credential.access_token_secret = data.access_token_secret
        credential.refresh_token = data.refresh_token
        credential.expires_at = as_utc(data.expires_at)
        credential.scopes = ",".join(data.scopes) if data.scopes else None
        credential.username = data.username
        credential.account_name = data.account_name
        # New dict so the JSON column registers the change
        credential.account_metadata = dict(data.account_metadata)
