"""
Tenant Scope
============

Ambient tenant (organization id) for the current task.

Usage:
    from agentkg.tenancy import tenant_scope

    with tenant_scope("acme"):
        entity = await graph.get_entity("e-1")   # filtered on orgId == "acme"

The value lives in a ContextVar, so concurrent tasks never see each
other's tenant. Explicit ``options.tenant`` always wins over the ambient one.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_current_tenant: ContextVar[Optional[str]] = ContextVar("agentkg_tenant", default=None)


def current_tenant() -> Optional[str]:
    """Return the ambient tenant, or None when no scope is active."""
    return _current_tenant.get()


@contextmanager
def tenant_scope(tenant: str) -> Iterator[str]:
    """Set the ambient tenant for the duration of the block."""
    token = _current_tenant.set(tenant)
    try:
        yield tenant
    finally:
        _current_tenant.reset(token)


def resolve_tenant(explicit: Optional[str], default: str = "") -> str:
    """
    Pick the tenant for one call.

    Order: explicit option, ambient scope, store default. An empty string
    means unscoped (no tenant filter).
    """
    if explicit:
        return explicit
    ambient = _current_tenant.get()
    if ambient:
        return ambient
    return default or ""
