from __future__ import annotations

import asyncio
import logging

from querybridge.core.config import get_settings
from querybridge.providers.adapters.base import TableSchema
from querybridge.providers.describer.base import TableDescriber, fallback_description
from querybridge.providers.describer.factory import load_table_describer


logger = logging.getLogger(__name__)


class DescriptionService:
    """Generates one description per table without ever failing the caller.

    Each table runs as its own task bounded by ``description_timeout_s``. Errors,
    timeouts and blank output all resolve to the deterministic fallback text.
    """

    def __init__(self, describer: TableDescriber | None = None, *, timeout_s: float | None = None) -> None:
        self._describer = describer
        self._timeout_s = float(timeout_s if timeout_s is not None else get_settings().description_timeout_s)

    @property
    def describer(self) -> TableDescriber | None:
        return self._describer

    def _resolve_describer(self) -> TableDescriber:
        if self._describer is None:
            self._describer = load_table_describer()
        return self._describer

    async def describe_table(self, table: TableSchema) -> str:
        describer = self._resolve_describer()
        try:
            text = await asyncio.wait_for(
                describer.describe(table.name, table.columns), timeout=self._timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning("table_description_timeout table=%s timeout_s=%s", table.name, self._timeout_s)
            return fallback_description(table.name, table.columns)
        except Exception as exc:  # noqa: BLE001 - descriptions are advisory; sync must proceed
            logger.warning("table_description_failed table=%s error=%s", table.name, exc)
            return fallback_description(table.name, table.columns)
        text = (text or "").strip()
        return text or fallback_description(table.name, table.columns)

    async def describe_all(self, tables: list[TableSchema]) -> dict[str, str]:
        if not tables:
            return {}
        results = await asyncio.gather(*(self.describe_table(table) for table in tables))
        return {table.name: description for table, description in zip(tables, results)}
