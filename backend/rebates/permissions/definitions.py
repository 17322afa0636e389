# Overview: All action definitions organized by resource.
# Each action is defined as: (code, name, description, category)

from .categories import ResourceCategory


# -- ORDERS --

ORDER_ACTIONS = [
    (
        "VIEW_ORDERS",
        "View Orders",
        "List and view orders",
        ResourceCategory.ORDERS,
    ),
    (
        "CREATE_ORDER",
        "Create Order",
        "Enter a new order with line items",
        ResourceCategory.ORDERS,
    ),
    (
        "EDIT_ORDER",
        "Edit Order",
        "Change order date, items, totals and status",
        ResourceCategory.ORDERS,
    ),
    (
        "RESPOND_TO_ORDER",
        "Confirm or Dispute Order",
        "Customer confirmation or dispute of an unlocked pending order",
        ResourceCategory.ORDERS,
    ),
    (
        "LOCK_ORDER",
        "Lock/Unlock Order",
        "Manually lock an order or lift an auto-lock",
        ResourceCategory.ORDERS,
    ),
    (
        "DELETE_ORDER",
        "Delete Order",
        "Permanently delete an order and its items",
        ResourceCategory.ORDERS,
    ),
]


# -- CONTRACTS --

CONTRACT_ACTIONS = [
    (
        "VIEW_CONTRACTS",
        "View Contracts",
        "List and view rebate contracts",
        ResourceCategory.CONTRACTS,
    ),
    (
        "CREATE_CONTRACT",
        "Create Contract",
        "Create a rebate contract for a customer",
        ResourceCategory.CONTRACTS,
    ),
    (
        "APPROVE_CONTRACT",
        "Approve Contract",
        "Approve, activate or reject a contract awaiting approval",
        ResourceCategory.CONTRACTS,
    ),
    (
        "EDIT_CONTRACT",
        "Edit Contract",
        "Change dates, percentage and documents of a contract",
        ResourceCategory.CONTRACTS,
    ),
    (
        "DELETE_CONTRACT",
        "Delete Contract",
        "Delete a contract and detach its orders",
        ResourceCategory.CONTRACTS,
    ),
]


# -- USERS --

USER_ACTIONS = [
    (
        "VIEW_USER_DIRECTORY",
        "View User Directory",
        "List users for customer pickers",
        ResourceCategory.USERS,
    ),
    (
        "REVIEW_ROLE_REQUESTS",
        "Review Role Requests",
        "Approve or reject requests for elevated roles",
        ResourceCategory.USERS,
    ),
    (
        "MANAGE_USERS",
        "Manage Users",
        "Change roles, capabilities and active status; delete users",
        ResourceCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_ACTIONS = [
    (
        "VIEW_SETTINGS",
        "View Settings",
        "Read runtime system settings",
        ResourceCategory.SYSTEM,
    ),
    (
        "EDIT_SETTINGS",
        "Edit Settings",
        "Change runtime system settings",
        ResourceCategory.SYSTEM,
    ),
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "Read the append-only audit log",
        ResourceCategory.SYSTEM,
    ),
    (
        "SEND_REMINDERS",
        "Send Order Reminders",
        "Trigger reminders for unconfirmed orders",
        ResourceCategory.SYSTEM,
    ),
]


ACTION_DEFINITIONS = ORDER_ACTIONS + CONTRACT_ACTIONS + USER_ACTIONS + SYSTEM_ACTIONS


# Per-user capabilities that unlock Scope.CAPABILITY grants
APPROVE_CONTRACTS_CAPABILITY = "approve_contracts"

CAPABILITIES = (APPROVE_CONTRACTS_CAPABILITY,)

CAPABILITY_FOR_ACTION = {
    "APPROVE_CONTRACT": APPROVE_CONTRACTS_CAPABILITY,
}
