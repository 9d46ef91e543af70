"""Role-based access control for discount decisions."""

from decision_engine.domain.models.parties import UserRole
from decision_engine.security.exceptions import AuthorizationError

# Permission matrix:
# Role         Request  Approve  Override auto-rejection  Manage rules  Manage governance
# Admin        ✓        ✓        ✓                        ✓             ✓
# Manager      ✓        ✓        ✓                        ✗             ✗
# Salesperson  ✓        ✗        ✗                        ✗             ✗

REQUEST_DISCOUNT = "request_discount"
APPROVE_DISCOUNT = "approve_discount"
OVERRIDE_AUTO_REJECTION = "override_auto_rejection"
MANAGE_RULES = "manage_rules"
MANAGE_GOVERNANCE = "manage_governance"

_ACTION_PERMISSIONS: dict[tuple[UserRole, str], bool] = {
    (UserRole.ADMIN, REQUEST_DISCOUNT): True,
    (UserRole.ADMIN, APPROVE_DISCOUNT): True,
    (UserRole.ADMIN, OVERRIDE_AUTO_REJECTION): True,
    (UserRole.ADMIN, MANAGE_RULES): True,
    (UserRole.ADMIN, MANAGE_GOVERNANCE): True,
    (UserRole.MANAGER, REQUEST_DISCOUNT): True,
    (UserRole.MANAGER, APPROVE_DISCOUNT): True,
    (UserRole.MANAGER, OVERRIDE_AUTO_REJECTION): True,
    (UserRole.MANAGER, MANAGE_RULES): False,
    (UserRole.MANAGER, MANAGE_GOVERNANCE): False,
    (UserRole.SALESPERSON, REQUEST_DISCOUNT): True,
    (UserRole.SALESPERSON, APPROVE_DISCOUNT): False,
    (UserRole.SALESPERSON, OVERRIDE_AUTO_REJECTION): False,
    (UserRole.SALESPERSON, MANAGE_RULES): False,
    (UserRole.SALESPERSON, MANAGE_GOVERNANCE): False,
}


class RBACService:
    """Check permission for role and action. Raise AuthorizationError if invalid."""

    def has_permission(self, role: UserRole, action: str) -> bool:
        return _ACTION_PERMISSIONS.get((role, action), False)

    def check_permission(self, role: UserRole, action: str) -> None:
        """Raises AuthorizationError if role does not have permission for action."""
        if not self.has_permission(role, action):
            raise AuthorizationError(
                f"Role {role.value} does not have permission for action '{action}'"
            )
