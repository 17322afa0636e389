from .users import User, RoleRequest, CapabilityGrant
from .contracts import Contract, LIVE_CONTRACT_STATUSES
from .orders import Order, OrderItem
from .audit import AuditLogEntry
from .settings import SystemSetting
from .verification import VerificationCode

__all__ = [
    'User', 'RoleRequest', 'CapabilityGrant',
    'Contract', 'LIVE_CONTRACT_STATUSES',
    'Order', 'OrderItem',
    'AuditLogEntry',
    'SystemSetting',
    'VerificationCode',
]
