"""Security: RBAC and tenant isolation."""

from decision_engine.security.rbac import RBACService
from decision_engine.security.tenant_context import TenantContext

__all__ = [
    "RBACService",
    "TenantContext",
]
