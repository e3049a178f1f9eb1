from __future__ import annotations

import pytest

from querybridge.core.errors import (
    ExternalConnectionError,
    IntrospectionTimeoutError,
    InvalidConnectionConfigError,
)
from querybridge.services.introspection import SchemaIntrospector
from querybridge.tests.utils.stubs import CUSTOMERS, ORDERS, StubAdapter, router_for


@pytest.mark.asyncio
async def test_introspect_returns_adapter_tables(postgres_params: dict) -> None:
    adapter = StubAdapter([ORDERS, CUSTOMERS])
    introspector = SchemaIntrospector(router_for(adapter), timeout_s=1)

    tables = await introspector.introspect("postgres", postgres_params)

    assert [table.name for table in tables] == ["orders", "customers"]
    assert adapter.introspect_calls == 1


@pytest.mark.asyncio
async def test_stalled_introspection_fails_closed(postgres_params: dict) -> None:
    adapter = StubAdapter([ORDERS], delay_s=5)
    introspector = SchemaIntrospector(router_for(adapter), timeout_s=0.05)

    with pytest.raises(IntrospectionTimeoutError) as exc:
        await introspector.introspect("postgres", postgres_params)
    # Timeouts are a connection-class failure for callers and the API.
    assert isinstance(exc.value, ExternalConnectionError)


@pytest.mark.asyncio
async def test_invalid_params_never_reach_adapter() -> None:
    adapter = StubAdapter([ORDERS])
    introspector = SchemaIntrospector(router_for(adapter), timeout_s=1)

    with pytest.raises(InvalidConnectionConfigError):
        await introspector.introspect("postgres", {"host": "only-host"})
    assert adapter.introspect_calls == 0


@pytest.mark.asyncio
async def test_connection_check_propagates_adapter_error(postgres_params: dict) -> None:
    adapter = StubAdapter(error=ExternalConnectionError("password authentication failed"))
    introspector = SchemaIntrospector(router_for(adapter), timeout_s=1)

    with pytest.raises(ExternalConnectionError):
        await introspector.test_connection("postgres", postgres_params)
    assert adapter.test_calls == 1
