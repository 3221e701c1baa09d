from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.staffing.models import Base

if TYPE_CHECKING:
    from app.staffing.models import User


class AngelType(Base):
    __tablename__ = "angel_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Restricted types need a supporter to confirm new members.
    restricted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    memberships: Mapped[list["UserAngelType"]] = relationship(
        back_populates="angeltype",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class UserAngelType(Base):
    __tablename__ = "user_angel_types"
    __table_args__ = (
        UniqueConstraint("user_id", "angeltype_id", name="uq_user_angel_types_user_angeltype"),
        Index("idx_user_angel_types_angeltype", "angeltype_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    angeltype_id: Mapped[int] = mapped_column(ForeignKey("angel_types.id", ondelete="CASCADE"), nullable=False)
    confirm_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    supporter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship(
        back_populates="angeltype_memberships",
        foreign_keys=[user_id],
        lazy="selectin",
    )
    confirm_user: Mapped["User | None"] = relationship(foreign_keys=[confirm_user_id], lazy="selectin")
    angeltype: Mapped[AngelType] = relationship(back_populates="memberships", lazy="selectin")

    @property
    def confirmed(self) -> bool:
        return self.confirm_user_id is not None
