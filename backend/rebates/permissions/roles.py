# Overview: Role policy table mapping (role, action) to an ownership scope.

from .categories import Scope


ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_STAFF = "staff"
ROLE_USER = "user"

ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF, ROLE_USER)

# Actions missing from a role's row resolve to Scope.NONE.
ROLE_POLICY = {
    ROLE_ADMIN: {
        "VIEW_ORDERS": Scope.ANY,
        "CREATE_ORDER": Scope.ANY,
        "EDIT_ORDER": Scope.ANY,
        "LOCK_ORDER": Scope.ANY,
        "DELETE_ORDER": Scope.ANY,
        "VIEW_CONTRACTS": Scope.ANY,
        "CREATE_CONTRACT": Scope.ANY,
        "APPROVE_CONTRACT": Scope.ANY,
        "EDIT_CONTRACT": Scope.ANY,
        "DELETE_CONTRACT": Scope.ANY,
        "VIEW_USER_DIRECTORY": Scope.ANY,
        "REVIEW_ROLE_REQUESTS": Scope.ANY,
        "MANAGE_USERS": Scope.ANY,
        "VIEW_SETTINGS": Scope.ANY,
        "EDIT_SETTINGS": Scope.ANY,
        "VIEW_AUDIT_LOG": Scope.ANY,
        "SEND_REMINDERS": Scope.ANY,
    },
    ROLE_MANAGER: {
        "VIEW_ORDERS": Scope.ANY,
        "CREATE_ORDER": Scope.ANY,
        "EDIT_ORDER": Scope.ANY,
        "LOCK_ORDER": Scope.ANY,
        "VIEW_CONTRACTS": Scope.ANY,
        "CREATE_CONTRACT": Scope.ANY,
        "APPROVE_CONTRACT": Scope.ANY,
        "VIEW_USER_DIRECTORY": Scope.ANY,
        "REVIEW_ROLE_REQUESTS": Scope.ANY,
        "VIEW_SETTINGS": Scope.ANY,
        "SEND_REMINDERS": Scope.ANY,
    },
    ROLE_STAFF: {
        "VIEW_ORDERS": Scope.CREATOR_OR_DISPUTED,
        "CREATE_ORDER": Scope.ANY,
        "EDIT_ORDER": Scope.CREATOR_OR_DISPUTED,
        "VIEW_CONTRACTS": Scope.ANY,
        "CREATE_CONTRACT": Scope.ANY,
        "APPROVE_CONTRACT": Scope.CAPABILITY,
        "VIEW_USER_DIRECTORY": Scope.ANY,
    },
    ROLE_USER: {
        "VIEW_ORDERS": Scope.CUSTOMER,
        "CREATE_ORDER": Scope.CUSTOMER,
        "RESPOND_TO_ORDER": Scope.CUSTOMER,
        "VIEW_CONTRACTS": Scope.CUSTOMER,
        "CREATE_CONTRACT": Scope.CUSTOMER,
    },
}
