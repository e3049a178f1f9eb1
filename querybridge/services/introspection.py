from __future__ import annotations

import asyncio
import logging
from typing import Any

from querybridge.core.config import get_settings
from querybridge.core.errors import IntrospectionTimeoutError
from querybridge.providers.adapters.base import TableSchema
from querybridge.providers.adapters.config import (
    ConnectionConfig,
    EngineType,
    describe_target,
    parse_connection_config,
)
from querybridge.providers.adapters.router import AdapterRouter


logger = logging.getLogger(__name__)


class SchemaIntrospector:
    def __init__(self, router: AdapterRouter | None = None, *, timeout_s: float | None = None) -> None:
        self._router = router or AdapterRouter()
        self._timeout_s = float(timeout_s if timeout_s is not None else get_settings().introspection_timeout_s)

    async def introspect(self, engine_type: str | EngineType, params: dict[str, Any]) -> list[TableSchema]:
        config = parse_connection_config(engine_type, params)
        return await self.introspect_config(config)

    async def introspect_config(self, config: ConnectionConfig) -> list[TableSchema]:
        adapter = self._router.adapter_for(config)
        target = describe_target(config)
        try:
            tables = await asyncio.wait_for(adapter.test_and_introspect(config), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            # Fail closed: callers must not treat a partial listing as the full schema.
            logger.warning("introspection_timeout target=%s timeout_s=%s", target, self._timeout_s)
            raise IntrospectionTimeoutError(
                f"schema introspection exceeded {self._timeout_s:g}s"
            ) from exc
        logger.info("introspection_complete target=%s tables=%s", target, len(tables))
        return tables

    async def test_connection(self, engine_type: str | EngineType, params: dict[str, Any]) -> None:
        config = parse_connection_config(engine_type, params)
        adapter = self._router.adapter_for(config)
        await adapter.test_connection(config)
