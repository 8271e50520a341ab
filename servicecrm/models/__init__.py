from servicecrm.models.user import User, UserRole
from servicecrm.models.customer import Customer, ServiceKind, WarrantyStatus, SERVICE_INTERVALS
from servicecrm.models.service import ServiceEntry, PaymentStatus, PaymentMethod
from servicecrm.models.reminder import Reminder
from servicecrm.models.amc import (
    AMCDetails,
    AMCContract,
    AMCServiceEntry,
    AMCType,
    ContractStatus,
    AMCPaymentMethod,
)

__all__ = [
    "User",
    "UserRole",
    "Customer",
    "ServiceKind",
    "WarrantyStatus",
    "SERVICE_INTERVALS",
    "ServiceEntry",
    "PaymentStatus",
    "PaymentMethod",
    "Reminder",
    "AMCDetails",
    "AMCContract",
    "AMCServiceEntry",
    "AMCType",
    "ContractStatus",
    "AMCPaymentMethod",
]
