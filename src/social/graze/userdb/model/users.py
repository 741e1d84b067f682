"""User account data model.

Provides the SQLAlchemy model for the ``users`` table along with the
statements used to create and list users.
"""

from datetime import datetime
from sqlalchemy import DateTime, Integer, UniqueConstraint, func, insert, select
from sqlalchemy.orm import Mapped, mapped_column

from social.graze.userdb.model.base import Base, str50, str255


class User(Base):
    """A registered user.

    Usernames and emails are unique across the table. Rows are never updated
    or deleted by the service; ``id`` and ``created_at`` are assigned by the
    database at insert time.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str50]
    email: Mapped[str255]
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("username", name="users_username_key"),
        UniqueConstraint("email", name="users_email_key"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
        }


def insert_user_stmt(username: str, email: str):
    """Create an insert statement that returns the stored user row."""
    return (
        insert(User)
        .values(username=username, email=email)
        .returning(User)
    )


def list_users_stmt():
    """Select all users, most recently created first.

    ``id`` breaks ties between rows created within the same clock tick.
    """
    return select(User).order_by(User.created_at.desc(), User.id.desc())
