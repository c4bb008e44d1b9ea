"""Parameter validation shared by the report services."""
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from sales_api.exceptions import ValidationError
from sales_api.utils.formatters import parse_date

MAX_PAGE_SIZE = 100

_INT_PATTERN = re.compile(r'-?\d+', re.ASCII)


def require_int(value, field: str, minimum: Optional[int] = None,
                maximum: Optional[int] = None) -> int:
    """
    Coerce ``value`` to int and check bounds. Out-of-range values are an
    error, never clamped.
    """
    if isinstance(value, bool):
        raise ValidationError(f'{field} debe ser un número entero')
    if isinstance(value, str) and _INT_PATTERN.fullmatch(value.strip()):
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f'{field} debe ser un número entero')
    if minimum is not None and value < minimum:
        raise ValidationError(f'{field} debe ser mayor o igual a {minimum}')
    if maximum is not None and value > maximum:
        raise ValidationError(f'{field} debe ser menor o igual a {maximum}')
    return value


def validate_pagination(page, limit) -> Tuple[int, int]:
    """1-based page and a page size in [1, 100]."""
    page = require_int(page, 'page', minimum=1)
    limit = require_int(limit, 'limit', minimum=1, maximum=MAX_PAGE_SIZE)
    return page, limit


def validate_date_range(start_date, end_date) -> Tuple[Optional[date], Optional[date]]:
    try:
        start = parse_date(start_date, 'start_date')
        end = parse_date(end_date, 'end_date')
    except ValueError as e:
        raise ValidationError(str(e))
    if start and end and start > end:
        raise ValidationError('start_date no puede ser posterior a end_date')
    return start, end


def date_bounds(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Convert inclusive day bounds into [start_dt, end_dt) datetimes.

    Returns:
        tuple: start at 00:00 of ``start``, end at 00:00 of the day after ``end``
    """
    start_dt = datetime.combine(start, time.min) if start else None
    end_dt = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return start_dt, end_dt


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit
