from .base import Base
from .company_plan import CompanyPlan
from .error_code import ErrorCode
from .event import Event
from .purchase_transaction import PurchaseTransaction
from .usage_counter import UsageCounter
from .user import UserProfile

__all__ = [
    "Base",
    "CompanyPlan",
    "ErrorCode",
    "Event",
    "PurchaseTransaction",
    "UsageCounter",
    "UserProfile",
]
