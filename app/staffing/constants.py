"""
Central constants for the staffing application.
"""
from __future__ import annotations

# Permission keys (seeded by scripts/init_db.py)
PERM_ADMIN_USER_ANGELTYPES = "user_angeltypes.admin"  # confirm all / auto-confirm own membership
PERM_ADMIN_ANGEL_TYPES = "angeltypes.admin"  # grant and revoke supporter rights

PERMISSIONS = {
    PERM_ADMIN_USER_ANGELTYPES: "Angel types: manage memberships",
    PERM_ADMIN_ANGEL_TYPES: "Angel types: manage supporters",
}

# Form fields that mark the "apply" phase of a two-phase action
FIELD_DENY_ALL = "deny_all"
FIELD_CONFIRM_ALL = "confirm_all"
FIELD_CONFIRM_USER = "confirm_user"
FIELD_DELETE = "delete"
FIELD_SUBMIT = "submit"
FIELD_AUTO_CONFIRM = "auto_confirm_user"
