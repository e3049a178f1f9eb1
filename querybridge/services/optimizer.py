from __future__ import annotations

import logging
import re
from typing import Protocol

from querybridge.providers.adapters.config import EngineType


logger = logging.getLogger(__name__)

_TRAILING_LIMIT = re.compile(r"\s+limit\s+(\d+)\s*$", re.IGNORECASE)


class SqlOptimizer(Protocol):
    def optimize(self, sql: str, engine_type: EngineType | None) -> str:
        ...


class PassthroughOptimizer:
    def optimize(self, sql: str, engine_type: EngineType | None) -> str:
        return sql


class DialectOptimizer:
    def optimize(self, sql: str, engine_type: EngineType | None) -> str:
        if engine_type == EngineType.ORACLE:
            # Oracle has no LIMIT; the row-limiting clause is FETCH FIRST (12c+).
            return _TRAILING_LIMIT.sub(lambda m: f" FETCH FIRST {m.group(1)} ROWS ONLY", sql)
        return sql


def optimize_best_effort(optimizer: SqlOptimizer, sql: str, engine_type: EngineType | None) -> str:
    try:
        optimized = optimizer.optimize(sql, engine_type)
    except Exception as exc:  # noqa: BLE001 - optimization must never block execution
        logger.warning("sql_optimizer_failed engine=%s error=%s", engine_type, exc)
        return sql
    return optimized or sql
