"""
User model for customers, artists and administrators.
"""

import enum
from typing import List, TYPE_CHECKING

from sqlalchemy import Boolean, Enum, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

if TYPE_CHECKING:
    from .device_token import DeviceToken


class ActorRole(str, enum.Enum):
    """Role an actor plays when acting on a booking."""
    CUSTOMER = "customer"
    ARTIST = "artist"
    ADMIN = "admin"


class User(Base):
    """User model for customers, artists and administrators."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[ActorRole] = mapped_column(
        Enum(ActorRole, name="actor_role", values_callable=lambda e: [m.value for m in e]),
        default=ActorRole.CUSTOMER,
        nullable=False,
        index=True
    )
    locale: Mapped[str] = mapped_column(String(8), default="ko", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    device_tokens: Mapped[List["DeviceToken"]] = relationship(
        "DeviceToken",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    def __repr__(self) -> str:
        """String representation of the user."""
        return f"<User(id={self.id}, email='{self.email}', role={self.role.value})>"
