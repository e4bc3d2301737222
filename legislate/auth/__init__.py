"""Authentication / authorization helpers.

- One `users` table for all four roles (admin, ngo, lawyer, individual)
- JWT access tokens (1 hour), sent as `Authorization: Bearer <token>`
- TOTP second factor for admin (once configured), ngo and lawyer accounts
- NGO / lawyer accounts stay `pending` until an admin verifies them

Gates are FastAPI dependencies and compose per endpoint:
`get_current_user` -> `require_role(...)` -> verified check.
"""

from .deps import (
    get_current_user,
    require_admin,
    require_role,
    require_verified,
    require_verified_role,
)
from .crud import bootstrap_admin_if_needed
from .security import TokenSigner

__all__ = [
    "get_current_user",
    "require_admin",
    "require_role",
    "require_verified",
    "require_verified_role",
    "bootstrap_admin_if_needed",
    "TokenSigner",
]
