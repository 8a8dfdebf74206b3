"""
Account services: password credentials and external identity reconciliation.
"""

from __future__ import annotations

import logging
from typing import Optional

from travelbook.db import AccountRecord, DbClient
from travelbook.errors import (
    DuplicateAccount,
    InvalidCredentials,
    InvalidIdentity,
    NotFound,
    ValidationError,
)
from travelbook.security import (
    SessionIssuer,
    hash_password,
    random_password,
    verify_password,
)

logger = logging.getLogger(__name__)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class CredentialStore:
    """Persists accounts and checks passwords. Hashes never leave this layer."""

    def __init__(self, db: DbClient):
        self.db = db

    def create_account(self, full_name: str, email: str, password: str) -> AccountRecord:
        full_name = _clean(full_name)
        email = normalize_email(email)
        if not full_name or not email or not password:
            raise ValidationError(
                "All fields are required to create your travel memory!"
            )
        if self.db.get_account_by_email(email):
            raise DuplicateAccount(f"Email {email} is already registered")
        account = self.db.create_account(
            full_name=full_name,
            email=email,
            password_hash=hash_password(password),
        )
        logger.info("Created account %s", account.account_id)
        return account

    def verify_password(self, email: str, password: str) -> AccountRecord:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError("Email and Password are required")
        account = self.db.get_account_by_email(email)
        if account is None:
            raise NotFound("User not found")
        if not verify_password(password, account.password_hash):
            raise InvalidCredentials("Invalid Credentials!")
        return account

    def get_account(self, account_id: str) -> AccountRecord:
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFound("User not found")
        return account

    def change_password(
        self, account_id: str, current_password: str, new_password: str
    ) -> None:
        if not current_password or not new_password:
            raise ValidationError("Current and new password are required")
        account = self.get_account(account_id)
        if not verify_password(current_password, account.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        account.password_hash = hash_password(new_password)
        self.db.update_account(account)
        logger.info("Changed password for account %s", account_id)

    def update_profile(self, account_id: str, full_name: str) -> AccountRecord:
        full_name = _clean(full_name)
        if not full_name:
            raise ValidationError("Full name is required")
        account = self.get_account(account_id)
        account.full_name = full_name
        self.db.update_account(account)
        return account

    def set_profile_image(self, account_id: str, image_url: str) -> Optional[str]:
        """Store a new profile image and return the one it replaced."""
        account = self.get_account(account_id)
        previous = account.profile_image_url
        account.profile_image_url = image_url
        self.db.update_account(account)
        return previous


class IdentityReconciler:
    """
    Maps an identity verified by an OAuth provider onto an account.

    Email is the only linking key, so the same address under two providers
    resolves to one account.
    """

    def __init__(self, db: DbClient, sessions: SessionIssuer):
        self.db = db
        self.sessions = sessions

    def _link(
        self,
        account: AccountRecord,
        display_name: str,
        avatar_url: str,
        external_id: str,
    ) -> AccountRecord:
        if external_id and not account.external_id:
            account.external_id = external_id
        if display_name and not account.full_name:
            account.full_name = display_name
        if avatar_url:
            account.profile_image_url = avatar_url
        self.db.update_account(account)
        logger.info("Linked external identity to account %s", account.account_id)
        return account

    def reconcile(
        self,
        email: Optional[str],
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> tuple[AccountRecord, str]:
        email = normalize_email(email)
        if not email:
            raise InvalidIdentity("Email is required for OAuth authentication")
        display_name = _clean(display_name)
        avatar_url = _clean(avatar_url)
        external_id = _clean(external_id)

        account = self.db.get_account_by_email(email)
        if account is not None:
            account = self._link(account, display_name, avatar_url, external_id)
        else:
            try:
                account = self.db.create_account(
                    full_name=display_name or email.split("@", 1)[0],
                    email=email,
                    password_hash=hash_password(random_password()),
                    external_id=external_id or None,
                    profile_image_url=avatar_url or None,
                    email_verified=True,
                )
                logger.info("Created account %s from OAuth sign-in", account.account_id)
            except DuplicateAccount:
                # Lost a race with a concurrent sign-in for the same email.
                account = self.db.get_account_by_email(email)
                if account is None:
                    raise
                account = self._link(account, display_name, avatar_url, external_id)

        return account, self.sessions.issue(account.account_id)
