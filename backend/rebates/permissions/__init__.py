# Overview: Authorization policy package.
# Re-exports the policy table, action catalog and lookup helpers.

from .categories import ResourceCategory, Scope
from .definitions import (
    ACTION_DEFINITIONS,
    ORDER_ACTIONS,
    CONTRACT_ACTIONS,
    USER_ACTIONS,
    SYSTEM_ACTIONS,
    APPROVE_CONTRACTS_CAPABILITY,
    CAPABILITIES,
    CAPABILITY_FOR_ACTION,
)
from .roles import (
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_STAFF,
    ROLE_USER,
    ROLES,
    ROLE_POLICY,
)
from .helpers import (
    get_all_action_codes,
    validate_action_code,
    scope_for,
)

__all__ = [
    "ResourceCategory",
    "Scope",
    "ACTION_DEFINITIONS",
    "ORDER_ACTIONS",
    "CONTRACT_ACTIONS",
    "USER_ACTIONS",
    "SYSTEM_ACTIONS",
    "APPROVE_CONTRACTS_CAPABILITY",
    "CAPABILITIES",
    "CAPABILITY_FOR_ACTION",
    "ROLE_ADMIN",
    "ROLE_MANAGER",
    "ROLE_STAFF",
    "ROLE_USER",
    "ROLES",
    "ROLE_POLICY",
    "get_all_action_codes",
    "validate_action_code",
    "scope_for",
]
