from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Integer, BigInteger, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servicecrm.database import Base

if TYPE_CHECKING:
    from servicecrm.models.customer import Customer


class PaymentStatus(str, Enum):
    FREE = "FREE"
    PAID = "PAID"
    UNPAID = "UNPAID"


class PaymentMethod(str, Enum):
    """Methods accepted for one-off service entries."""
    CASH = "CASH"
    UPI = "UPI"


class ServiceEntry(Base):
    """A single service visit. Amount is in paise."""
    __tablename__ = "service_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    service_date: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    service_kind: Mapped[str] = mapped_column(String(50), default="MAINTENANCE")
    service_label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    amount: Mapped[int] = mapped_column(BigInteger, default=0)
    payment_status: Mapped[str] = mapped_column(
        String(50), default=PaymentStatus.UNPAID.value, index=True, comment="FREE, PAID, UNPAID"
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="CASH, UPI")
    is_free: Mapped[bool] = mapped_column(Boolean, default=False)
    notes: Mapped[str] = mapped_column(Text, default="")

    customer: Mapped["Customer"] = relationship("Customer", back_populates="services")

    def __repr__(self) -> str:
        return f"<ServiceEntry {self.id} customer={self.customer_id}>"
