"""Request guards: authentication, company resolution and authorization dependencies."""

from app.guards.auth import get_current_user
from app.guards.company import CompanyContext, require_company
from app.guards.roles import require_roles, require_super_admin
from app.guards.tenant import TenantContext, require_permission, resolve_tenant

__all__ = [
    "get_current_user",
    "CompanyContext",
    "require_company",
    "require_roles",
    "require_super_admin",
    "TenantContext",
    "require_permission",
    "resolve_tenant",
]
