from __future__ import annotations

import pytest
from fastapi import Request
from httpx import ASGITransport, AsyncClient

from querybridge.apps.api.deps import get_adapter_router, get_description_service
from querybridge.apps.api.main import create_app
from querybridge.core.config import get_settings
from querybridge.core.errors import ExternalConnectionError, ExternalQueryError
from querybridge.providers.adapters.base import RawResult
from querybridge.providers.describer.fake import FakeTableDescriber, NullTableDescriber
from querybridge.providers.describer.openai_chat import OpenAIChatDescriber
from querybridge.services.descriptions import DescriptionService
from querybridge.tests.utils.stubs import CUSTOMERS, ORDERS, StubAdapter, router_for


HEADERS = {"X-Org-Id": "org-acme", "X-User-Id": "user-1"}


@pytest.fixture
def adapter() -> StubAdapter:
    return StubAdapter(
        [ORDERS, CUSTOMERS],
        result=RawResult(columns=["id", "total"], rows=[{"id": 1, "total": 12.3456}]),
    )


@pytest.fixture
async def client(database, org, adapter):
    app = create_app(database=database)
    # Route every engine to the in-memory stub; no external database is contacted.
    app.dependency_overrides[get_adapter_router] = lambda: router_for(adapter)
    app.dependency_overrides[get_description_service] = lambda: DescriptionService(FakeTableDescriber(), timeout_s=1)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.mark.asyncio
async def test_health_reports_pool(client) -> None:
    response = await client.get("/v1/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["data"]["status"] == "ok"
    assert payload["meta"]["api_version"] == "v1"
    assert response.headers["X-Request-Id"] == payload["meta"]["request_id"]
    assert payload["meta"]["elapsed_ms"] >= 0
    assert "count" not in payload["meta"]


@pytest.mark.asyncio
async def test_missing_identity_headers_is_unauthorized(client) -> None:
    response = await client.get("/v1/database/tables")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_sync_then_list_tables(client, postgres_params) -> None:
    response = await client.post(
        "/v1/database/sync",
        json={"engine_type": "postgres", "params": postgres_params},
        headers=HEADERS,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["preview"] is False
    assert data["connection_changed"] is True
    assert data["table_count"] == 2

    response = await client.get("/v1/database/tables", headers=HEADERS)
    assert response.status_code == 200
    tables = response.json()["data"]
    assert response.json()["meta"]["count"] == 2
    assert [table["table_name"] for table in tables] == ["customers", "orders"]
    assert all(table["table_description"] for table in tables)
    assert len(tables[1]["columns"]) == 2

    # Another org sees nothing.
    response = await client.get("/v1/database/tables", headers={"X-Org-Id": "org-other", "X-User-Id": "u"})
    assert response.json()["data"] == []


@pytest.mark.asyncio
async def test_sync_preview_returns_tables(client, postgres_params) -> None:
    response = await client.post(
        "/v1/database/sync",
        json={"engine_type": "postgres", "params": postgres_params, "force_refresh": True},
        headers=HEADERS,
    )
    data = response.json()["data"]
    assert data["preview"] is True
    assert [table["name"] for table in data["tables"]] == ["orders", "customers"]
    assert data["tables"][0]["columns"][1] == {"name": "total", "type": "numeric"}


@pytest.mark.asyncio
async def test_sync_with_invalid_params_is_422(client) -> None:
    response = await client.post(
        "/v1/database/sync",
        json={"engine_type": "oracle", "params": {"user": "u"}},
        headers=HEADERS,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_CONNECTION_CONFIG"


@pytest.mark.asyncio
async def test_sync_for_unknown_org_is_404(client, postgres_params) -> None:
    response = await client.post(
        "/v1/database/sync",
        json={"engine_type": "postgres", "params": postgres_params},
        headers={"X-Org-Id": "ghost", "X-User-Id": "u"},
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ORG_NOT_FOUND"


@pytest.mark.asyncio
async def test_test_connection_ok_and_failure(client, adapter, postgres_params) -> None:
    response = await client.post(
        "/v1/database/test-connection",
        json={"engine_type": "POSTGRES", "params": postgres_params},
        headers=HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "ok", "engine_type": "postgres"}

    adapter.error = ExternalConnectionError("could not connect to postgres: timeout")
    response = await client.post(
        "/v1/database/test-connection",
        json={"engine_type": "postgres", "params": postgres_params},
        headers=HEADERS,
    )
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "EXTERNAL_CONNECTION_FAILED"


@pytest.mark.asyncio
async def test_toggle_column_searchable_is_org_scoped(client, postgres_params) -> None:
    await client.post(
        "/v1/database/sync", json={"engine_type": "postgres", "params": postgres_params}, headers=HEADERS
    )
    tables = (await client.get("/v1/database/tables", headers=HEADERS)).json()["data"]
    column_id = tables[0]["columns"][0]["id"]

    response = await client.post(
        f"/v1/database/columns/{column_id}/searchable", json={"is_searchable": False}, headers=HEADERS
    )
    assert response.status_code == 200
    assert response.json()["data"]["is_searchable"] is False

    response = await client.post(
        f"/v1/database/columns/{column_id}/searchable",
        json={"is_searchable": True},
        headers={"X-Org-Id": "org-other", "X-User-Id": "u"},
    )
    assert response.status_code == 404


async def _connect(client, postgres_params) -> None:
    response = await client.post(
        "/v1/database/sync", json={"engine_type": "postgres", "params": postgres_params}, headers=HEADERS
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_execute_query_success_then_stats_and_activity(client, postgres_params) -> None:
    await _connect(client, postgres_params)

    response = await client.post("/v1/queries/execute", json={"sql": "SELECT id, total FROM orders"}, headers=HEADERS)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["columns"] == ["id", "total"]
    assert data["rows"] == [[1, 12.35]]
    assert data["query_id"] is not None

    stats = (await client.get("/v1/stats/performance?days=7", headers=HEADERS)).json()["data"]
    assert stats["total_queries"] == 1
    assert stats["success_rate"] == 1.0
    assert len(stats["daily"]) == 1

    activity = (await client.get("/v1/activity", headers=HEADERS)).json()["data"]
    assert [entry["activity_type"] for entry in activity] == ["QUERY", "SYNC_SCHEMA"]
    # Connection secrets never appear in activity metadata.
    assert "s3cret" not in str(activity)


@pytest.mark.asyncio
async def test_rejected_statements_are_400_with_reason(client, adapter, postgres_params) -> None:
    await _connect(client, postgres_params)

    response = await client.post("/v1/queries/execute", json={"sql": "SHOW TABLES"}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "UNSUPPORTED_STATEMENT"

    response = await client.post("/v1/queries/execute", json={"sql": "DROP TABLE orders"}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"keyword": "drop"}

    response = await client.post(
        "/v1/queries/execute", json={"sql": "SELECT * FROM orders WHERE 1=1; TRUNCATE orders"}, headers=HEADERS
    )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "UNSAFE_STATEMENT"
    assert error["details"] == {"keyword": "truncate"}
    assert adapter.executed == []

    stats = (await client.get("/v1/stats/performance", headers=HEADERS)).json()["data"]
    assert stats["total_queries"] == 0


@pytest.mark.asyncio
async def test_missing_table_suggests_resync(client, adapter, postgres_params) -> None:
    await _connect(client, postgres_params)
    adapter.error = ExternalQueryError('relation "nonexistent_view" does not exist')

    response = await client.post(
        "/v1/queries/execute", json={"sql": "SELECT * FROM nonexistent_view"}, headers=HEADERS
    )
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "TARGET_OBJECT_MISSING"
    assert error["details"] == {"hint": "resync_schema"}

    stats = (await client.get("/v1/stats/performance", headers=HEADERS)).json()["data"]
    assert (stats["total_queries"], stats["failed_queries"]) == (1, 1)


@pytest.mark.asyncio
async def test_generic_failure_carries_detail(client, adapter, postgres_params) -> None:
    await _connect(client, postgres_params)
    adapter.error = ExternalQueryError("permission denied for table orders")

    response = await client.post("/v1/queries/execute", json={"sql": "SELECT * FROM orders"}, headers=HEADERS)
    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "QUERY_EXECUTION_FAILED"
    assert error["details"]["detail"] == "permission denied for table orders"


@pytest.mark.asyncio
async def test_empty_sql_fails_request_validation(client) -> None:
    response = await client.post("/v1/queries/execute", json={"sql": ""}, headers=HEADERS)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_app_without_database_reports_unavailable() -> None:
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        response = await http_client.get("/v1/database/tables", headers=HEADERS)
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_lifespan_shares_one_describer_and_closes_it(database, monkeypatch) -> None:
    monkeypatch.setenv("DESCRIBER_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    get_settings.cache_clear()
    app = create_app(database=database)

    async with app.router.lifespan_context(app):
        describer = app.state.describer
        assert isinstance(describer, OpenAIChatDescriber)
        request = Request({"type": "http", "app": app})
        assert get_description_service(request).describer is describer
        assert get_description_service(request).describer is describer
        http_client = describer._get_client()

    assert http_client.is_closed
    assert app.state.describer is None
    # The injected metadata store outlives the app.
    assert app.state.database is database


@pytest.mark.asyncio
async def test_misconfigured_describer_degrades_at_startup(database, monkeypatch) -> None:
    monkeypatch.setenv("DESCRIBER_PROVIDER", "carrier-pigeon")
    get_settings.cache_clear()
    app = create_app(database=database)

    async with app.router.lifespan_context(app):
        assert isinstance(app.state.describer, NullTableDescriber)


@pytest.mark.asyncio
async def test_table_active_flag_and_descriptions_can_be_managed(client, postgres_params) -> None:
    await _connect(client, postgres_params)
    tables = (await client.get("/v1/database/tables", headers=HEADERS)).json()["data"]
    orders = next(table for table in tables if table["table_name"] == "orders")

    response = await client.post(
        f"/v1/database/tables/{orders['id']}/active", json={"is_active": False}, headers=HEADERS
    )
    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False

    response = await client.post(
        f"/v1/database/tables/{orders['id']}/description",
        json={"description": "One row per checkout"},
        headers=HEADERS,
    )
    assert response.json()["data"]["table_description"] == "One row per checkout"

    response = await client.post(
        f"/v1/database/tables/{orders['id']}/description", json={"regenerate": True}, headers=HEADERS
    )
    assert response.json()["data"]["table_description"] == "Stores orders records: id (integer), total (numeric)"

    column_id = orders["columns"][1]["id"]
    response = await client.post(
        f"/v1/database/columns/{column_id}/description", json={"description": "Total in cents"}, headers=HEADERS
    )
    assert response.json()["data"]["column_description"] == "Total in cents"

    listed = (await client.get("/v1/database/tables", headers=HEADERS)).json()["data"]
    stored = next(table for table in listed if table["table_name"] == "orders")
    assert stored["is_active"] is False
    assert stored["columns"][1]["column_description"] == "Total in cents"


@pytest.mark.asyncio
async def test_table_management_rejects_foreign_and_ambiguous_requests(client, postgres_params) -> None:
    await _connect(client, postgres_params)
    table_id = (await client.get("/v1/database/tables", headers=HEADERS)).json()["data"][0]["id"]
    other = {"X-Org-Id": "org-other", "X-User-Id": "u"}

    response = await client.post(f"/v1/database/tables/{table_id}/active", json={"is_active": False}, headers=other)
    assert response.status_code == 404

    for body in ({}, {"description": "x", "regenerate": True}):
        response = await client.post(f"/v1/database/tables/{table_id}/description", json=body, headers=HEADERS)
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"
