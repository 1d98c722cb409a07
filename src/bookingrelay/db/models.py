"""SQLAlchemy ORM models for the tables the relay reads.

Learn: The relay does not own this schema. The booking system writes
these tables; the relay only maps the columns it reads (declarative,
SQLAlchemy 2.0 style with Mapped[] + mapped_column). There are no
migrations here; the tables already exist.
"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Driver(Base):
    __tablename__ = "drivers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    firstname: Mapped[Optional[str]] = mapped_column(String(100))
    lastname: Mapped[Optional[str]] = mapped_column(String(100))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))


class Booking(Base):
    """A booking. assigned_driver_id is NULL or 0 while no driver is assigned,
    so it is not declared as a foreign key."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    assigned_driver_id: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
