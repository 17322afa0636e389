# Overview: Utility functions for action lookups and policy resolution.

from .categories import Scope
from .definitions import ACTION_DEFINITIONS
from .roles import ROLE_POLICY


def get_all_action_codes():
    """Get list of all action codes."""
    return [action[0] for action in ACTION_DEFINITIONS]


def validate_action_code(code):
    """Check if an action code is valid."""
    return code in get_all_action_codes()


def scope_for(role, action):
    """Scope granted to a role for an action. Unknown roles and actions get Scope.NONE."""
    if not validate_action_code(action):
        raise ValueError(f"Unknown action: {action}")
    return ROLE_POLICY.get(role, {}).get(action, Scope.NONE)
