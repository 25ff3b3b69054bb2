"""
Manager re-validation for cash closure (four-eyes control).

The ClosureCoordinator depends only on the ``Authorizer`` protocol.
``CredentialAuthorizer`` is the stock implementation: it checks a staff
account's username and password against its bcrypt hash, requires the
configured manager role, and refuses an approver who is also the person
requesting the closure.

Passwords are stored as bcrypt hashes (``$2b$<rounds>$...``).  bcrypt only
reads the first 72 bytes of a password, so longer ones are refused at
registration.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

import bcrypt
from sqlalchemy import select

from stock_kernel.domain.dtos import AuthorizedApprover, ManagerCredentials
from stock_kernel.domain.values import require_text
from stock_kernel.exceptions import AuthorizationError, ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.staff_account import StaffAccount
from stock_kernel.services.base import BaseService

logger = get_logger("services.authorizer")

DEFAULT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, *, rounds: int = DEFAULT_ROUNDS) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(stored: str, provided: str) -> bool:
    """Check ``provided`` against a stored bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(provided.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        return False


class Authorizer(Protocol):
    """Verifies a second, privileged party for a sensitive action."""

    def authorize(
        self,
        credentials: ManagerCredentials,
        initiator_id: UUID,
    ) -> AuthorizedApprover:
        """Return the approver, or raise AuthorizationError."""
        ...


class CredentialAuthorizer(BaseService[StaffAccount]):
    """Authorizer backed by the ``staff_accounts`` table."""

    def authorize(
        self,
        credentials: ManagerCredentials,
        initiator_id: UUID,
    ) -> AuthorizedApprover:
        """
        Raises:
            AuthorizationError: unknown user, wrong password, inactive
                account, role other than the manager role, or the approver
                is the initiator.
        """
        username = (credentials.username or "").strip()
        account = self.session.execute(
            select(StaffAccount).where(StaffAccount.username == username)
        ).scalar_one_or_none()

        # Same reason for unknown user and bad password
        if account is None or not verify_password(account.password_hash, credentials.password):
            self._deny("invalid credentials", username)
        if not account.is_active:
            self._deny("account is inactive", username)
        if account.role != self._config.manager_role:
            self._deny(f"role '{account.role}' cannot authorize cash closure", username)
        if account.id == initiator_id:
            self._deny("approver must be a different user than the initiator", username)

        logger.info(
            "closure_authorized",
            extra={"approver": username, "approver_id": str(account.id)},
        )
        return AuthorizedApprover(
            approver_id=account.id,
            username=account.username,
            role=account.role,
        )

    @staticmethod
    def _deny(reason: str, username: str) -> None:
        logger.warning(
            "closure_authorization_denied",
            extra={"approver": username, "reason": reason},
        )
        raise AuthorizationError(reason, approver=username or None)

    def register_staff(self, username: str, password: str, role: str) -> UUID:
        """
        Provision a staff account.

        Raises:
            ValidationError: empty or duplicate username, empty role, or a
                password shorter than MIN_PASSWORD_LENGTH or longer than
                MAX_PASSWORD_BYTES when encoded.
        """
        clean_username = require_text(username, "username", 100)
        clean_role = require_text(role, "role", 50)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "password", "<hidden>", f"must be at least {MIN_PASSWORD_LENGTH} characters",
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(
                "password", "<hidden>", f"must be at most {MAX_PASSWORD_BYTES} bytes",
            )

        existing = self.session.execute(
            select(StaffAccount.id).where(StaffAccount.username == clean_username)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationError("username", clean_username, "already registered")

        account = StaffAccount(
            username=clean_username,
            role=clean_role,
            password_hash=hash_password(password),
            is_active=True,
            created_at=self._clock.now(),
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "staff_registered",
            extra={"staff_id": str(account.id), "username": clean_username, "role": clean_role},
        )
        return account.id
