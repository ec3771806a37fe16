"""Credential store: persistence of user accounts over SQLAlchemy."""

import logging
from datetime import UTC, datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cadence.models.user import User

logger = logging.getLogger(__name__)


class DuplicateKey(Exception):
    """Insert collided with the unique username or email constraint."""


class UserNotFound(LookupError):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """
    Reads and writes ``users`` rows through one request-scoped session.

    Uniqueness is enforced by the database constraints, so two concurrent
    inserts for the same username resolve to one row and one DuplicateKey.
    Other SQLAlchemy errors propagate to the caller after rollback.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, username: str, email: str, password_hash: str) -> User:
        user = User(
            username=username,
            email=normalize_email(email),
            password_hash=password_hash,
            is_admin=False,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateKey("username or email already exists") from e
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(user)
        return user

    def find_by_username_or_email(self, identifier: str) -> User:
        """Match the identifier against username (exact) or email (case-insensitive)."""
        user = (
            self.session.query(User)
            .filter(
                or_(
                    User.username == identifier,
                    User.email == normalize_email(identifier),
                )
            )
            .first()
        )
        if user is None:
            raise UserNotFound(identifier)
        return user

    def find_by_email(self, email: str) -> User:
        user = self.session.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            raise UserNotFound(email)
        return user

    def find_by_id(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if user is None:
            raise UserNotFound(str(user_id))
        return user

    def update_password_hash(self, user_id: int, password_hash: str) -> None:
        if not password_hash:
            raise ValueError("password hash must be non-empty")
        try:
            updated = (
                self.session.query(User)
                .filter(User.id == user_id)
                .update({User.password_hash: password_hash}, synchronize_session="fetch")
            )
            if updated == 0:
                self.session.rollback()
                raise UserNotFound(str(user_id))
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def touch_last_login(self, user_id: int) -> bool:
        """Best-effort last_login update; failures are logged and reported as False."""
        try:
            self.session.query(User).filter(User.id == user_id).update(
                {User.last_login: datetime.now(UTC)}, synchronize_session="fetch"
            )
            self.session.commit()
            return True
        except SQLAlchemyError:
            self.session.rollback()
            logger.warning("Failed to update last login time for user_id=%s", user_id, exc_info=True)
            return False

    def list_users(self) -> list[User]:
        return self.session.query(User).order_by(User.id).all()

    def set_admin(self, username: str, is_admin: bool) -> User:
        """Flip the role flag. Operator tooling only; no API route calls this."""
        user = self.session.query(User).filter(User.username == username).first()
        if user is None:
            raise UserNotFound(username)
        user.is_admin = is_admin
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self.session.refresh(user)
        return user
