"""ORM model for user accounts (credentials and role flag)."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    false,
    func,
)

from cadence.models.base import Base


class User(Base):
    """
    User account for session authentication and role-based access control.

    is_admin is never set through the API; only operator tooling flips it.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("password_hash <> ''", name="password_hash_not_empty"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False, server_default=false())
    profile_image_path = Column(String(1024), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    last_login = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} admin={self.is_admin}>"
