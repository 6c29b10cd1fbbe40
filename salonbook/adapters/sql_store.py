"""
SQLAlchemy-backed reservation store.

Double booking is prevented by the database itself: a partial unique index
covers (company_id, slot_date, slot_time) for confirmed rows only, so
cancelled history never blocks a slot and two racing writers cannot both
commit a confirmed row.
"""

import logging
from datetime import date
from typing import List, Optional

import pendulum
from sqlalchemy import Column, Date, DateTime, Index, String, create_engine, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.pool import StaticPool

from ..domain.exceptions import ReservationNotFoundError, SlotConflictError
from ..domain.models import Reservation, ReservationStatus

logger = logging.getLogger(__name__)

Base = declarative_base()

_CONFIRMED_ONLY = text("status = 'confirmed'")


class ReservationRow(Base):
    """Reservation table; rows are never deleted."""
    __tablename__ = "reservations"

    id = Column(String(32), primary_key=True)
    company_id = Column(String(64), nullable=False, index=True)
    client_id = Column(String(128), nullable=False, index=True)
    service_id = Column(String(64), nullable=False)
    slot_date = Column(Date, nullable=False, index=True)
    slot_time = Column(String(5), nullable=False)
    status = Column(String(16), nullable=False, default=ReservationStatus.CONFIRMED.value)
    created_at = Column(DateTime, nullable=True)  # naive UTC

    __table_args__ = (
        Index(
            "uq_confirmed_slot",
            "company_id",
            "slot_date",
            "slot_time",
            unique=True,
            sqlite_where=_CONFIRMED_ONLY,
            postgresql_where=_CONFIRMED_ONLY,
        ),
    )

    def to_domain(self) -> Reservation:
        return Reservation(
            id=self.id,
            company_id=self.company_id,
            client_id=self.client_id,
            service_id=self.service_id,
            date=self.slot_date,
            time=self.slot_time,
            status=self.status,
            created_at=pendulum.instance(self.created_at, tz="UTC") if self.created_at else None,
        )

    @classmethod
    def from_domain(cls, reservation: Reservation) -> "ReservationRow":
        created_at = None
        if reservation.created_at is not None:
            created_at = reservation.created_at.in_timezone("UTC").naive()

        return cls(
            id=reservation.id,
            company_id=reservation.company_id,
            client_id=reservation.client_id,
            service_id=reservation.service_id,
            slot_date=reservation.date,
            slot_time=reservation.time,
            status=reservation.status.value,
            created_at=created_at,
        )


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return create_engine(database_url, **options)

    return create_engine(database_url, pool_pre_ping=True)


class SqlReservationStore:
    """Reservation store on any SQLAlchemy-supported database with partial indexes."""

    def __init__(self, database_url: str = "sqlite://", engine: Optional[Engine] = None):
        self.engine = engine or build_engine(database_url)
        Base.metadata.create_all(self.engine)

    def list_reservations(self, company_id: str, day: Optional[date] = None) -> List[Reservation]:
        query = select(ReservationRow).where(ReservationRow.company_id == company_id)
        if day is not None:
            query = query.where(ReservationRow.slot_date == day)
        query = query.order_by(ReservationRow.slot_date, ReservationRow.slot_time)

        with Session(self.engine) as session:
            return [row.to_domain() for row in session.scalars(query)]

    def get(self, reservation_id: str) -> Optional[Reservation]:
        with Session(self.engine) as session:
            row = session.get(ReservationRow, reservation_id)
            return row.to_domain() if row else None

    def insert(self, reservation: Reservation) -> Reservation:
        """
        Insert a reservation in its own transaction.

        Raises:
            SlotConflictError: If the unique confirmed-slot index rejects the row
            ValueError: If the id is already in use
        """
        try:
            with Session(self.engine) as session, session.begin():
                session.add(ReservationRow.from_domain(reservation))
        except IntegrityError as exc:
            if self.get(reservation.id) is not None:
                raise ValueError(f"Reservation id already exists: {reservation.id}") from exc
            logger.warning(
                "Unique slot index rejected reservation for %s %s %s",
                reservation.company_id, reservation.date, reservation.time,
            )
            raise SlotConflictError(reservation.company_id, reservation.date, reservation.time) from exc

        return reservation

    def update_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        *,
        expected: ReservationStatus,
    ) -> Optional[Reservation]:
        """
        Compare-and-set the status.

        Returns the updated reservation, or None if the current status differs.

        Raises:
            ReservationNotFoundError: If the id is unknown
        """
        statement = (
            update(ReservationRow)
            .where(ReservationRow.id == reservation_id)
            .where(ReservationRow.status == expected.value)
            .values(status=status.value)
        )

        try:
            with Session(self.engine) as session, session.begin():
                result = session.execute(statement)
                changed = result.rowcount
        except IntegrityError as exc:
            current = self.get(reservation_id)
            raise SlotConflictError(current.company_id, current.date, current.time) from exc

        current = self.get(reservation_id)
        if current is None:
            raise ReservationNotFoundError(f"Unknown reservation: {reservation_id}")

        return current if changed else None
