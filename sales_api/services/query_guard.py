"""
Safety gate for free-text analytics queries.

This is a shape filter, not a SQL parser: it only guarantees that the
enumerated attack shapes are refused. Layers are applied in order and the
first failing one wins:

1. the query must start with SELECT (case-insensitive, after trimming)
2. denylist of destructive keywords, injection shapes, stacked statements
   and comment markers
3. length cap

If stronger guarantees are ever needed, add fixed parametrized reports
instead of extending this filter.
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sales_api.exceptions import RejectedQueryError, StoreFailure

MAX_QUERY_LENGTH = 2000

_SELECT_PREFIX = re.compile(r'SELECT\b')

# (rule, pattern, reason) - evaluated in order
DANGEROUS_PATTERNS = [
    (
        'destructive_keyword',
        re.compile(r'\b(DROP|DELETE|TRUNCATE|ALTER|CREATE|REPLACE|GRANT|REVOKE)\b', re.IGNORECASE),
        'La consulta contiene operaciones no permitidas',
    ),
    (
        'injection_shape',
        re.compile(r'\b(UNION\s+SELECT|INSERT\s+INTO|UPDATE\s+\w+\s+SET)\b', re.IGNORECASE),
        'La consulta contiene una construcción no permitida',
    ),
    (
        'stacked_statement',
        re.compile(r';\s*(DROP|DELETE|TRUNCATE|ALTER|CREATE|INSERT|UPDATE|GRANT|REVOKE)\b', re.IGNORECASE),
        'No se permiten sentencias encadenadas',
    ),
    (
        'comment',
        re.compile(r'--|#|/\*|\*/'),
        'No se permiten comentarios SQL',
    ),
]


@dataclass(frozen=True)
class QueryValidation:
    """Outcome of the safety gate."""
    accepted: bool
    reason: Optional[str] = None
    rule: Optional[str] = None


def validate_query(query: str, max_length: int = MAX_QUERY_LENGTH) -> QueryValidation:
    """
    Check a free-text query against the safety gate.

    Normalization (trim + upper case) is only used for the prefix check; the
    patterns and the length cap look at the text exactly as it will be run.
    """
    if not isinstance(query, str):
        return QueryValidation(False, 'La consulta debe ser texto', 'not_select')

    normalized = query.strip().upper()
    if not _SELECT_PREFIX.match(normalized):
        return QueryValidation(False, 'Solo se permiten consultas SELECT', 'not_select')

    for rule, pattern, reason in DANGEROUS_PATTERNS:
        if pattern.search(query):
            return QueryValidation(False, reason, rule)

    if len(query) > max_length:
        return QueryValidation(
            False,
            f'Consulta demasiado larga (máx {max_length} caracteres)',
            'too_long'
        )

    return QueryValidation(True)


def ensure_read_only(query: str, max_length: int = MAX_QUERY_LENGTH) -> str:
    """Return the query unchanged if accepted, otherwise raise RejectedQueryError."""
    result = validate_query(query, max_length)
    if not result.accepted:
        raise RejectedQueryError(result.reason, result.rule)
    return query


def execute_read_query(session: Session, query: str,
                       max_length: int = MAX_QUERY_LENGTH) -> List[Dict[str, Any]]:
    """
    Run an accepted query and return its rows as dicts.

    The session is rolled back afterwards so nothing the statement might have
    touched is ever committed.
    """
    ensure_read_only(query, max_length)
    try:
        result = session.execute(text(query))
        return [dict(row._mapping) for row in result]
    except SQLAlchemyError as e:
        raise StoreFailure(f"Error al ejecutar la consulta: {e.__class__.__name__}") from e
    finally:
        session.rollback()
