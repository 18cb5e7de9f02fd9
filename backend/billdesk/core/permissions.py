"""Access control: role gate dependencies and ownership checks.

The role gate runs first (as a route dependency). The ownership gate runs
inside the handler once the resource is loaded: callers must have created
the resource or be assigned to it. Admins and operations managers bypass
ownership on reads; on writes only admins do.
"""

from fastapi import Depends

from billdesk.core.auth import get_current_user
from billdesk.core.errors import OwnershipError, PermissionDeniedError
from billdesk.models.user import User, UserRole
from billdesk.services import lifecycle

PRIVILEGED_ROLES = (UserRole.admin, UserRole.operations_manager)


def require_roles(*roles: UserRole):
    """Dependency factory: admit only users whose role is in ``roles``."""

    async def _dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise PermissionDeniedError()
        return current_user

    return _dependency


require_admin = require_roles(UserRole.admin)
require_staff = require_roles(UserRole.admin, UserRole.operations_manager)
require_end_user = require_roles(UserRole.user)


def is_owner(item, user: User) -> bool:
    """True if ``user`` created ``item`` or is among its assigned users."""
    if item.created_by_id == user.id:
        return True
    return any(u.id == user.id for u in item.assigned_users)


def ensure_can_view(item, user: User) -> None:
    if user.role in PRIVILEGED_ROLES:
        return
    if not is_owner(item, user) or not lifecycle.is_visible_to_owner(item):
        raise OwnershipError()


def ensure_can_modify(item, user: User, *, allow_assigned: bool = False) -> None:
    if user.role == UserRole.admin:
        return
    if item.created_by_id == user.id:
        return
    if allow_assigned and is_owner(item, user):
        return
    raise OwnershipError()
