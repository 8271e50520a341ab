from typing import TYPE_CHECKING, Optional

from sqlalchemy import Integer, BigInteger, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servicecrm.database import Base

if TYPE_CHECKING:
    from servicecrm.models.customer import Customer


class Reminder(Base):
    """Follow-up for a customer. sent_status is toggled by staff, never inferred."""
    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    reminder_date: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    sent_status: Mapped[bool] = mapped_column(Boolean, default=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="reminders")

    def __repr__(self) -> str:
        return f"<Reminder {self.id} customer={self.customer_id} sent={self.sent_status}>"
