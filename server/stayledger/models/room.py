"""Room and room type model definitions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .booking import Booking


class RoomStatus(str, Enum):
    """Operational room status. Advisory only; bookability comes from date conflicts."""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    CLEANING = "cleaning"
    MAINTENANCE = "maintenance"


class RoomType(Base):
    """Room category carrying the base nightly price and guest capacity."""

    __tablename__ = "room_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_room_type_base_price_non_negative"),
        CheckConstraint("capacity > 0", name="ck_room_type_capacity_positive"),
    )

    rooms: Mapped[list["Room"]] = relationship("Room", back_populates="room_type")

    def __repr__(self) -> str:
        return f"<RoomType(id={self.id}, name='{self.name}', base_price={self.base_price})>"


class Room(Base):
    """A physical room, keyed by its room number."""

    __tablename__ = "rooms"

    room_number: Mapped[str] = mapped_column(String(20), primary_key=True)
    room_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("room_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    floor: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Room-level override; the room type's base price applies when unset
    price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    status: Mapped[RoomStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RoomStatus.AVAILABLE,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        server_onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(room_number) > 0", name="ck_room_number_not_empty"),
        CheckConstraint("price IS NULL OR price >= 0", name="ck_room_price_non_negative"),
    )

    room_type: Mapped["RoomType"] = relationship("RoomType", back_populates="rooms")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="room")

    def effective_price(self) -> Decimal:
        """Nightly price: the room override when set, else the room type base price."""
        if self.price is not None and self.price > 0:
            return self.price
        return self.room_type.base_price

    def __repr__(self) -> str:
        return f"<Room(room_number='{self.room_number}', type={self.room_type_id}, status={self.status})>"
