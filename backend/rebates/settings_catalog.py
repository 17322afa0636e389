# Overview: Catalog of runtime system settings (key, type, default, bounds).

SETTINGS_CATALOG = [
    {
        "key": "auto_lock_days",
        "type": "int",
        "default": "3",
        "min": 0,
        "max": 365,
        "description": "Days after the order date before a pending order locks automatically",
    },
    {
        "key": "default_rebate_percentage",
        "type": "decimal",
        "default": "1.00",
        "min": 0,
        "max": 100,
        "description": "Rebate percentage for new contracts and for recalculated orders",
    },
    {
        "key": "order_reminder_days",
        "type": "int",
        "default": "7",
        "min": 1,
        "max": 365,
        "description": "Age in days of a pending order before the customer is reminded",
    },
    {
        "key": "require_email_verification",
        "type": "bool",
        "default": "false",
        "description": "Require a verified email code at registration",
    },
]

CATALOG_BY_KEY = {row["key"]: row for row in SETTINGS_CATALOG}
