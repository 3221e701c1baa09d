from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from app.staffing.modules.angeltypes.models import UserAngelType


class Base(DeclarativeBase):
    pass


class UserRole(Base):
    __tablename__ = "user_roles"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # nick shown to other angels
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    # Empty string means "no password set" (e.g. OAuth-only accounts).
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list["Role"]] = relationship(
        secondary="user_roles",
        back_populates="users",
        lazy="selectin",
    )
    personal_data: Mapped["UserPersonalData"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    contact: Mapped["UserContact"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    settings: Mapped["UserSettings"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    angeltype_memberships: Mapped[list["UserAngelType"]] = relationship(
        "UserAngelType",
        back_populates="user",
        foreign_keys="UserAngelType.user_id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault("personal_data", UserPersonalData())
        kwargs.setdefault("contact", UserContact())
        kwargs.setdefault(
            "settings",
            UserSettings(
                language="en_US",
                theme=0,
                email_shiftinfo=False,
                email_news=False,
                email_human=False,
                email_goody=False,
                mobile_show=False,
            ),
        )
        super().__init__(**kwargs)


class UserPersonalData(Base):
    __tablename__ = "users_personal_data"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    pronoun: Mapped[str | None] = mapped_column(String(15), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    planned_arrival_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    planned_departure_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    shirt_size: Mapped[str | None] = mapped_column(String(4), nullable=True)

    user: Mapped[User] = relationship(back_populates="personal_data")


class UserContact(Base):
    __tablename__ = "users_contact"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    dect: Mapped[str | None] = mapped_column(String(40), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(40), nullable=True)

    user: Mapped[User] = relationship(back_populates="contact")


class UserSettings(Base):
    __tablename__ = "users_settings"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    language: Mapped[str] = mapped_column(String(64), nullable=False, default="en_US")
    theme: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    email_shiftinfo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_news: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_human: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_goody: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mobile_show: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user: Mapped[User] = relationship(back_populates="settings")


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "admin"
    name: Mapped[str] = mapped_column(String(128), nullable=False)  # display name
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    users: Mapped[list[User]] = relationship(secondary="user_roles", back_populates="roles", lazy="selectin")
    permissions: Mapped[list["Permission"]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "angeltypes.admin"
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list[Role]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


class AuditEvent(Base):
    """
    Append-only audit trail event.
    `reason` carries the human-readable log line ("User alice joined Engel.").
    """

    __tablename__ = "audit_events"
    __table_args__ = (Index("idx_audit_events_created_at", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "user_angeltype.confirm"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "AngelType"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.staffing.modules.angeltypes.models import AngelType, UserAngelType  # noqa: E402,F401
