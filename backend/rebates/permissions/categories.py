# Overview: Resource categories and ownership scopes used by the policy table.


class ResourceCategory:
    """Resource an action applies to (used for grouping and audit entity types)."""
    ORDERS = "order"
    CONTRACTS = "contract"
    USERS = "user"
    SYSTEM = "system"


class Scope:
    """
    How far a role's grant for an action reaches.

    ANY: every record.
    CUSTOMER: records whose customer_id is the caller.
    CREATOR_OR_DISPUTED: records the caller created, plus disputed orders.
    CAPABILITY: only when the caller holds the capability mapped to the action.
    NONE: never.
    """
    ANY = "any"
    CUSTOMER = "customer"
    CREATOR_OR_DISPUTED = "creator_or_disputed"
    CAPABILITY = "capability"
    NONE = "none"
