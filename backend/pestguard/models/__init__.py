from .tenancy import Customer, Store
from .auth import Admin, Employee, AccessOwner, SessionToken, ACCESS_OWNER_ROLES
from .access import AccessGrant, PRINCIPAL_TYPES, SCOPE_TYPES
from .schedule import ScheduleEvent, SCHEDULE_STATUSES

__all__ = [
    'Customer', 'Store',
    'Admin', 'Employee', 'AccessOwner', 'SessionToken', 'ACCESS_OWNER_ROLES',
    'AccessGrant', 'PRINCIPAL_TYPES', 'SCOPE_TYPES',
    'ScheduleEvent', 'SCHEDULE_STATUSES',
]
