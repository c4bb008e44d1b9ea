"""
Formatting helpers for money, dates and JSON output.
"""
import enum
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Any, Optional, Union

from flask.json.provider import DefaultJSONProvider

CENT = Decimal('0.01')


def to_money(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """
    Convert a value to a Decimal with exactly two places.

    Examples:
        to_money(10) -> Decimal('10.00')
        to_money('3.456') -> Decimal('3.46')
        to_money(None) -> Decimal('0.00')
    """
    if value is None or value == "":
        return Decimal('0.00')
    try:
        return Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f'Monto inválido: {value!r}')


def parse_date(value: Union[date, datetime, str, None], field: str = 'fecha') -> Optional[date]:
    """
    Parse an ISO date (YYYY-MM-DD). Returns None for empty values.

    Raises:
        ValueError: the string is not a valid date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValueError(f'{field} debe tener formato YYYY-MM-DD')


def json_default(obj: Any) -> Any:
    """``default`` hook for json.dumps: dates as ISO strings, Decimals as strings."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


class SalesJSONProvider(DefaultJSONProvider):
    """Flask JSON provider that renders datetimes as ISO 8601."""
    default = staticmethod(json_default)
