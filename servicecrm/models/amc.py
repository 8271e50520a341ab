"""AMC (Annual Maintenance Contract) models."""
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Integer, BigInteger, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servicecrm.database import Base

if TYPE_CHECKING:
    from servicecrm.models.customer import Customer


class AMCType(str, Enum):
    """AMC type enum."""
    ONLY_SERVICE = "ONLY_SERVICE"
    SERVICE_WITH_PARTS = "SERVICE_WITH_PARTS"
    SERVICE_WITH_PARTS_50 = "SERVICE_WITH_PARTS_50"  # Parts at half price


class ContractStatus(str, Enum):
    """Derived from contract dates; stored only as a snapshot on AMC service entries."""
    ACTIVE = "ACTIVE"
    PENDING_RENEWAL = "PENDING_RENEWAL"
    EXPIRED = "EXPIRED"


class AMCPaymentMethod(str, Enum):
    """Methods accepted for AMC payments. A superset of service payment methods."""
    CASH = "CASH"
    UPI = "UPI"
    BANK_TRANSFER = "BANK_TRANSFER"
    ONLINE = "ONLINE"
    CHEQUE = "CHEQUE"
    OTHER = "OTHER"

    @classmethod
    def from_service_method(cls, method: Enum) -> "AMCPaymentMethod":
        """Map a service PaymentMethod onto the AMC set by name. There is no reverse."""
        return cls[method.name]


class AMCDetails(Base):
    """Short-form AMC embedded in a customer (one per customer). Amounts in paise."""

    __tablename__ = "amc_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    contract_type: Mapped[str] = mapped_column(
        String(50), default=AMCType.ONLY_SERVICE.value,
        comment="ONLY_SERVICE, SERVICE_WITH_PARTS, SERVICE_WITH_PARTS_50"
    )
    duration_years: Mapped[int] = mapped_column(Integer, default=1)
    contract_start_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    contract_end_date: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    payment_method: Mapped[str] = mapped_column(String(50), default=AMCPaymentMethod.CASH.value)
    total_amount: Mapped[int] = mapped_column(BigInteger, default=0)
    remaining_balance: Mapped[int] = mapped_column(BigInteger, default=0)
    notes: Mapped[str] = mapped_column(Text, default="")

    customer: Mapped["Customer"] = relationship("Customer", back_populates="amc_details")

    def __repr__(self) -> str:
        return f"<AMCDetails {self.id} customer={self.customer_id}>"


class AMCContract(Base):
    """Long-form AMC applied in bulk across several customers at once."""

    __tablename__ = "amc_contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    contract_type: Mapped[str] = mapped_column(String(50), default=AMCType.ONLY_SERVICE.value)
    amount: Mapped[int] = mapped_column(BigInteger, default=0)
    start_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    end_date: Mapped[int] = mapped_column(BigInteger, nullable=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="amc_contracts")

    def __repr__(self) -> str:
        return f"<AMCContract {self.id} customer={self.customer_id}>"


class AMCServiceEntry(Base):
    """Visit performed under an AMC, with the contract status at the time of service."""

    __tablename__ = "amc_service_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )

    service_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    contract_type: Mapped[str] = mapped_column(String(50), nullable=False)
    contract_status: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="ACTIVE, PENDING_RENEWAL, EXPIRED"
    )
    parts_replaced: Mapped[str] = mapped_column(Text, default="")
    follow_up_needed: Mapped[bool] = mapped_column(Boolean, default=False)

    # Price reduction (display strings, all or nothing)
    reduction_part_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    reduction_regular_price: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reduction_discount_price: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    notes: Mapped[str] = mapped_column(Text, default="")

    customer: Mapped["Customer"] = relationship("Customer", back_populates="amc_services")

    def __repr__(self) -> str:
        return f"<AMCServiceEntry {self.id} customer={self.customer_id}>"
