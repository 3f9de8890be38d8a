"""Business and staff membership models."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.listings_service.models.enums import BusinessType, StaffRole, enum_values
from sqlalchemy import Boolean, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Business(Base):
    """A seller of surplus food. ``owner_auth_id`` is the identity provider id."""

    __tablename__ = "businesses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    business_type: Mapped[BusinessType] = mapped_column(
        SAEnum(
            BusinessType,
            name="business_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=BusinessType.RESTAURANT,
        nullable=False,
    )
    owner_auth_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    staff: Mapped[list["BusinessStaff"]] = relationship(
        back_populates="business", cascade="all, delete-orphan", lazy="noload"
    )

    def __repr__(self):
        return f"<Business {self.id} {self.name!r}>"


class BusinessStaff(Base):
    __tablename__ = "business_staff"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    role: Mapped[StaffRole] = mapped_column(
        SAEnum(
            StaffRole,
            name="staff_role_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=StaffRole.STAFF,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    business: Mapped["Business"] = relationship(back_populates="staff")

    __table_args__ = (
        UniqueConstraint("business_id", "user_id", name="uq_business_staff_user"),
    )
