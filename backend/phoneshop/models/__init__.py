from .auth import User, SessionToken
from .security import SecurityEvent
from .parties import Customer, Supplier
from .inventory import Phone, Purchase, Repair, PhoneStatus, PhoneCondition, RepairStatus
from .sales import Sale, Payment, PaymentAllocation, PaymentType
from .staff import Worker, WorkerPayment

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Customer', 'Supplier',
    'Phone', 'Purchase', 'Repair',
    'Sale', 'Payment', 'PaymentAllocation',
    'Worker', 'WorkerPayment',
    'PhoneStatus', 'PhoneCondition', 'RepairStatus', 'PaymentType',
]
