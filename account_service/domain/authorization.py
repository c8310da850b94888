"""Self-or-admin access decision shared by every protected operation."""

from __future__ import annotations

from typing import Any

from ..security.tokens import TokenClaims
from .account import Role

# Target owner used for admin-only resources; no subject ever matches it.
ADMIN_ONLY = None


def can_access(claims: TokenClaims, target_owner_id: Any) -> bool:
    """Return ``True`` when the actor is an admin or owns the target resource.

    Identifiers are compared by their string form, so a malformed route
    parameter is simply a non-matching owner and access is denied.
    """
    if claims.role == Role.admin:
        return True
    if target_owner_id is ADMIN_ONLY:
        return False
    return str(claims.subject_id) == str(target_owner_id)
