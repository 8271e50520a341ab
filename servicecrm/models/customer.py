from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Integer, BigInteger, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servicecrm.database import Base

if TYPE_CHECKING:
    from servicecrm.models.amc import AMCDetails, AMCContract, AMCServiceEntry
    from servicecrm.models.service import ServiceEntry
    from servicecrm.models.reminder import Reminder


class ServiceKind(str, Enum):
    """Service classification. OTHER carries a free-text label."""
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"
    REPAIR = "REPAIR"
    OTHER = "OTHER"


class WarrantyStatus(str, Enum):
    """Derived on read, never stored."""
    IN_WARRANTY = "IN_WARRANTY"
    OUT_WARRANTY = "OUT_WARRANTY"


SERVICE_INTERVALS = (1, 3, 6)


class Customer(Base):
    """
    Customer with an installed appliance.

    Timestamps are epoch nanoseconds. next_service_date is derived on write
    by the derivation engine; warranty status is computed on read.
    """
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    brand: Mapped[str] = mapped_column(String(100), default="Unknown")
    model: Mapped[str] = mapped_column(String(100), default="Unknown")

    service_kind: Mapped[str] = mapped_column(
        String(50),
        default=ServiceKind.MAINTENANCE.value,
        comment="CLEANING, MAINTENANCE, REPAIR, OTHER"
    )
    service_label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    installation_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    service_interval: Mapped[int] = mapped_column(Integer, default=3, comment="Months: 1, 3 or 6")
    next_service_date: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    last_service_done_date: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, comment="Set by mark-done; anchors next_service_date"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    amc_details: Mapped[Optional["AMCDetails"]] = relationship(
        "AMCDetails",
        back_populates="customer",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    amc_contracts: Mapped[List["AMCContract"]] = relationship(
        "AMCContract",
        back_populates="customer",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    amc_services: Mapped[List["AMCServiceEntry"]] = relationship(
        "AMCServiceEntry",
        back_populates="customer",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    services: Mapped[List["ServiceEntry"]] = relationship(
        "ServiceEntry",
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    reminders: Mapped[List["Reminder"]] = relationship(
        "Reminder",
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.name}>"
