from __future__ import annotations

from dataclasses import dataclass
import re

from querybridge.core.errors import UnsafeStatementRejected, UnsupportedStatementType


# Mutating or procedure-execution keywords; matched as whole words anywhere in the statement.
DENYLIST: tuple[str, ...] = (
    "drop",
    "delete",
    "update",
    "insert",
    "alter",
    "truncate",
    "exec",
    "execute",
)

_ALLOWED_PREFIX = re.compile(r"^(select|with)\b")
_DENY_PATTERN = re.compile(r"\b(" + "|".join(DENYLIST) + r")\b")


@dataclass(frozen=True)
class ValidatedStatement:
    # Text sent to the engine: trimmed, terminators removed, comment lines kept out.
    sql: str
    # Lower-cased single-line form used for the checks.
    normalized: str


def statement_lines(sql: str) -> list[str]:
    stripped = (sql or "").strip()
    while stripped.endswith(";"):
        stripped = stripped[:-1].rstrip()
    lines = [line.strip() for line in stripped.splitlines()]
    return [line for line in lines if line and not line.startswith("--")]


def validate_statement(sql: str) -> ValidatedStatement:
    """Admit only a single read-only statement.

    This is a textual guard, not a parser: keywords inside string literals are
    rejected too, and inline block comments are not stripped.
    """
    lines = statement_lines(sql)
    # Newlines are kept in the executed text so trailing inline comments stay scoped to their line.
    cleaned = "\n".join(lines)
    normalized = " ".join(lines).lower()
    if not normalized:
        raise UnsupportedStatementType("Only SELECT queries are allowed; statement is empty")
    # A mutating keyword is reported as unsafe whether or not the prefix check passes.
    match = _DENY_PATTERN.search(normalized)
    if match:
        keyword = match.group(1)
        raise UnsafeStatementRejected(
            f"Query contains forbidden keyword: {keyword.upper()}", keyword=keyword
        )
    if not _ALLOWED_PREFIX.match(normalized):
        raise UnsupportedStatementType("Only SELECT queries are allowed")
    return ValidatedStatement(sql=cleaned, normalized=normalized)
