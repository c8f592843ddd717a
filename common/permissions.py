import logging

from rest_framework.permissions import BasePermission

logger = logging.getLogger("security.authorization")

ROLE_CLERK = "clerk"
ROLE_SUPERVISOR = "supervisor"
ROLE_ADMIN = "admin"

ROLE_CAPABILITY_MATRIX = {
    "ledger.view": {ROLE_CLERK, ROLE_SUPERVISOR, ROLE_ADMIN},
    "ledger.write": {ROLE_CLERK, ROLE_SUPERVISOR, ROLE_ADMIN},
    "party.balance.override": {ROLE_SUPERVISOR, ROLE_ADMIN},
    "item.manage": {ROLE_CLERK, ROLE_SUPERVISOR, ROLE_ADMIN},
    "item.delete": {ROLE_SUPERVISOR, ROLE_ADMIN},
    "stock.override": {ROLE_SUPERVISOR, ROLE_ADMIN},
    "payment.cleanup": {ROLE_SUPERVISOR, ROLE_ADMIN},
    "audit.view": {ROLE_ADMIN},
}


def get_user_role(user):
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return ROLE_ADMIN
    if getattr(user, "is_staff", False):
        return ROLE_SUPERVISOR
    return ROLE_CLERK


def user_has_capability(user, capability):
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    allowed_roles = ROLE_CAPABILITY_MATRIX.get(capability)
    if not allowed_roles:
        return False
    return get_user_role(user) in allowed_roles


class RoleCapabilityPermission(BasePermission):
    """Permission class that validates role capability by action/method and logs denied attempts."""

    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        capability_map = getattr(view, "permission_action_map", {})
        action_key = getattr(view, "action", None) or request.method.lower()
        capability = capability_map.get(action_key)
        if capability is None:
            return True

        allowed = user_has_capability(request.user, capability)
        if not allowed:
            logger.warning(
                "permission_denied capability=%s user=%s role=%s method=%s path=%s view=%s action=%s",
                capability,
                getattr(request.user, "username", "anonymous"),
                get_user_role(request.user),
                request.method,
                request.path,
                view.__class__.__name__,
                action_key,
            )
        return allowed
