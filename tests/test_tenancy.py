"""
Tests for the ambient tenant scope.
"""

import asyncio

import pytest

from agentkg.tenancy import current_tenant, resolve_tenant, tenant_scope


class TestTenantScope:
    """ContextVar-backed scope."""

    def test_no_scope(self):
        """Outside a scope there is no ambient tenant."""
        assert current_tenant() is None

    def test_nested_scopes_restore(self):
        """Leaving a scope restores the outer tenant."""
        with tenant_scope("outer"):
            with tenant_scope("inner") as value:
                assert value == "inner"
                assert current_tenant() == "inner"
            assert current_tenant() == "outer"
        assert current_tenant() is None

    def test_restored_after_exception(self):
        """The scope resets even when the block raises."""
        with pytest.raises(RuntimeError):
            with tenant_scope("acme"):
                raise RuntimeError("boom")
        assert current_tenant() is None

    @pytest.mark.asyncio
    async def test_tasks_do_not_leak(self):
        """Each task sees only its own scope."""
        seen = {}

        async def worker(name):
            with tenant_scope(name):
                await asyncio.sleep(0)
                seen[name] = current_tenant()

        await asyncio.gather(worker("a"), worker("b"))

        assert seen == {"a": "a", "b": "b"}


class TestResolveTenant:
    """explicit > ambient > default > unscoped."""

    def test_order(self):
        """Each source is used only when the previous one is empty."""
        assert resolve_tenant(None) == ""
        assert resolve_tenant(None, "store") == "store"
        with tenant_scope("ambient"):
            assert resolve_tenant(None, "store") == "ambient"
            assert resolve_tenant("explicit", "store") == "explicit"

    def test_empty_explicit_falls_through(self):
        """An empty explicit value does not override."""
        with tenant_scope("ambient"):
            assert resolve_tenant("", "store") == "ambient"
