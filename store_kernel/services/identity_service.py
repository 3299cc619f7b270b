"""
IdentityService -- operators and PIN authentication.

Responsibility:
    Looks up operators, authenticates a raw PIN, creates operators and
    rotates PINs.  Raw PINs never leave this module: they are hashed on the
    way in and never logged.

Architecture position:
    Kernel > Services.  Used by the schema bootstrap and by the login path
    of the application facade.

Invariants enforced:
    - PIN hashes are unique across users (UniqueConstraint uq_users_pin_hash),
      since a PIN alone identifies the operator.
    - A PIN is a non-empty string of ASCII digits.

Failure modes:
    - DuplicatePinError when another operator already uses the PIN.
    - InvalidCredentialsError when change_pin gets a wrong current PIN.
    - UserNotFoundError for unknown user ids on mutation.
    - Lookups (find_user_by_id, authenticate) return None when nothing
      matches; "not found" is not an error for them.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from store_kernel.domain.dtos import UserInfo
from store_kernel.domain.validation import parse_role, require_pin, require_text
from store_kernel.exceptions import (
    DuplicatePinError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from store_kernel.logging_config import get_logger
from store_kernel.models.user import User, UserRole
from store_kernel.services.base import BaseService
from store_kernel.utils.hashing import hash_pin, pin_matches

logger = get_logger("services.identity")


class IdentityService(BaseService[User]):
    """Service for operator accounts."""

    @staticmethod
    def _to_dto(user: User) -> UserInfo:
        return UserInfo(
            id=user.id,
            name=user.name,
            role=UserRole(user.role),
            created_at=user.created_at,
        )

    def _get_by_id(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _pin_in_use(self, pin_hash: str) -> bool:
        return (
            self.session.execute(
                select(User.id).where(User.pin_hash == pin_hash)
            ).first()
            is not None
        )

    def _flush_unique(self, user_id: int | None) -> None:
        """Flush inside a savepoint so a PIN collision leaves the session usable."""
        savepoint = self.session.begin_nested()
        try:
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.info("duplicate_pin_rejected", extra={"user_id": user_id})
            raise DuplicatePinError() from exc

    def find_user_by_id(self, user_id: int) -> UserInfo | None:
        user = self.session.get(User, user_id)
        return self._to_dto(user) if user else None

    def count_users(self) -> int:
        return self.session.execute(select(func.count(User.id))).scalar_one()

    def authenticate(self, raw_pin: str) -> UserInfo | None:
        """
        Find the operator whose PIN matches.

        Args:
            raw_pin: PIN as typed by the operator.

        Returns:
            UserInfo of the matching operator, or None.
        """
        if not isinstance(raw_pin, str) or not raw_pin:
            logger.info("authentication_failed", extra={"reason": "empty_pin"})
            return None

        user = self.session.execute(
            select(User).where(User.pin_hash == hash_pin(raw_pin))
        ).scalar_one_or_none()

        if user is None:
            logger.info("authentication_failed", extra={"reason": "no_match"})
            return None

        logger.info("authentication_succeeded", extra={"user_id": user.id})
        return self._to_dto(user)

    def create_user(
        self,
        name: str,
        pin: str,
        role: UserRole | str = UserRole.OPERATOR,
    ) -> UserInfo:
        """
        Create an operator.

        Args:
            name: Display name.
            pin: Raw PIN, digits only.  Stored hashed.
            role: UserRole or its string value.

        Returns:
            Created UserInfo.

        Raises:
            InvalidPinError: If the PIN is not a digit string.
            InvalidRoleError: If the role is unknown.
            DuplicatePinError: If another operator already uses the PIN.
        """
        user_role = parse_role(role)
        pin_hash = hash_pin(require_pin(pin))
        if self._pin_in_use(pin_hash):
            raise DuplicatePinError()

        user = User(
            name=require_text(name, "name"),
            pin_hash=pin_hash,
            role=user_role.value,
        )
        self.session.add(user)
        self._flush_unique(None)

        logger.info(
            "user_created",
            extra={"user_id": user.id, "role": user_role.value},
        )
        return self._to_dto(user)

    def change_pin(self, user_id: int, current_pin: str, new_pin: str) -> UserInfo:
        """
        Replace an operator's PIN after verifying the current one.

        Raises:
            UserNotFoundError: If the user does not exist.
            InvalidCredentialsError: If current_pin does not match.
            InvalidPinError: If new_pin is not a digit string.
            DuplicatePinError: If another operator already uses new_pin.
        """
        user = self._get_by_id(user_id)
        if not isinstance(current_pin, str) or not pin_matches(current_pin, user.pin_hash):
            logger.warning("pin_change_rejected", extra={"user_id": user_id})
            raise InvalidCredentialsError(user_id)

        new_hash = hash_pin(require_pin(new_pin))
        if new_hash == user.pin_hash:
            return self._to_dto(user)
        if self._pin_in_use(new_hash):
            raise DuplicatePinError()

        user.pin_hash = new_hash
        self._flush_unique(user_id)

        logger.info("pin_changed", extra={"user_id": user_id})
        return self._to_dto(user)
