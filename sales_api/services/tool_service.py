"""
Analytics tools for the AI assistant.

Exposes the read reports as named tools: ``list_tools`` returns their
descriptors and ``call_tool`` runs one and wraps the result in a text
content block. Only ``execute_custom_query`` accepts free text, and it goes
through the query safety gate.
"""
import json
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from sales_api.exceptions import SalesError, ValidationError
from sales_api.services import (
    sales_report_service, inventory_report_service, client_report_service
)
from sales_api.services.query_guard import execute_read_query
from sales_api.utils.formatters import json_default

CACHE_MODULE = 'analytics'

_PAGINATION_PROPERTIES = {
    'page': {'type': 'integer', 'minimum': 1, 'default': 1},
    'limit': {'type': 'integer', 'minimum': 1, 'maximum': 100, 'default': 50},
}

TOOLS = [
    {
        'name': 'get_sales_summary',
        'description': 'Obtiene resumen estadístico general de todas las ventas: total vendido, ticket promedio, estado de ventas, etc.',
        'inputSchema': {'type': 'object', 'properties': {}, 'required': []},
    },
    {
        'name': 'get_sales_by_date_range',
        'description': 'Obtiene ventas filtradas por rango de fechas con paginación. Útil para reportes mensuales o personalizados.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'start_date': {'type': 'string', 'format': 'date', 'description': 'Fecha inicio (YYYY-MM-DD)'},
                'end_date': {'type': 'string', 'format': 'date', 'description': 'Fecha fin (YYYY-MM-DD)'},
                **_PAGINATION_PROPERTIES,
            },
        },
    },
    {
        'name': 'get_top_products',
        'description': 'Obtiene los productos más vendidos por ingresos generados. Ideal para identificar bestsellers.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'limit': {'type': 'integer', 'minimum': 1, 'maximum': 20, 'default': 10},
                'min_sales': {'type': 'integer', 'minimum': 0, 'default': 1, 'description': 'Mínimo de unidades vendidas para incluir'},
            },
        },
    },
    {
        'name': 'get_revenue_by_period',
        'description': 'Obtiene ingresos agrupados por día/semana/mes para generar gráficos de tendencias.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'period': {'type': 'string', 'enum': ['day', 'week', 'month'], 'default': 'day'},
                'start_date': {'type': 'string', 'format': 'date'},
                'end_date': {'type': 'string', 'format': 'date'},
            },
        },
    },
    {
        'name': 'search_sales',
        'description': 'Busca ventas por nombre de cliente, email o ID de venta. Soporta búsqueda parcial.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'search_term': {'type': 'string', 'description': 'Término a buscar (nombre, email o ID)'},
                **_PAGINATION_PROPERTIES,
            },
            'required': ['search_term'],
        },
    },
    {
        'name': 'get_inventory_status',
        'description': 'Obtiene estado del inventario con alertas de productos con stock bajo o agotados.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'low_stock_threshold': {'type': 'integer', 'minimum': 0, 'default': 10, 'description': 'Umbral para alertas de stock bajo'},
            },
        },
    },
    {
        'name': 'get_products_by_price_range',
        'description': 'Agrupa productos por rangos de precio para análisis de portafolio.',
        'inputSchema': {'type': 'object', 'properties': {}, 'required': []},
    },
    {
        'name': 'get_products_turnover',
        'description': 'Identifica productos con mayor rotación (ventas vs stock). Útil para decisiones de reorden.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'limit': {'type': 'integer', 'minimum': 1, 'maximum': 20, 'default': 10},
            },
        },
    },
    {
        'name': 'get_clients_summary',
        'description': 'Obtiene estadísticas generales de clientes: totales, nuevos, con/sin compras.',
        'inputSchema': {'type': 'object', 'properties': {}, 'required': []},
    },
    {
        'name': 'get_top_clients',
        'description': 'Obtiene los clientes que más han comprado por volumen total gastado.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'limit': {'type': 'integer', 'minimum': 1, 'maximum': 20, 'default': 10},
            },
        },
    },
    {
        'name': 'get_clients_by_purchase_frequency',
        'description': 'Agrupa clientes por frecuencia de compra para análisis de fidelidad.',
        'inputSchema': {'type': 'object', 'properties': {}, 'required': []},
    },
    {
        'name': 'execute_custom_query',
        'description': 'Ejecuta una consulta SELECT personalizada (solo lectura). Útil para reportes específicos no cubiertos por otras herramientas.',
        'inputSchema': {
            'type': 'object',
            'properties': {
                'query': {'type': 'string', 'description': 'Consulta SELECT válida. Solo lectura, sin operaciones de escritura.'},
            },
            'required': ['query'],
        },
    },
]

TOOL_NAMES = frozenset(tool['name'] for tool in TOOLS)

# Tools whose result only depends on their arguments and the stored data
CACHEABLE_TOOLS = set(TOOL_NAMES) - {'execute_custom_query'}


def _arg(args: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Read an argument, treating a missing key and null alike."""
    value = args.get(key)
    return default if value is None else value


def _custom_query(session: Session, args: Dict[str, Any]) -> dict:
    query = _arg(args, 'query', '')
    if not isinstance(query, str) or not query.strip():
        raise ValidationError('El campo "query" es requerido')
    rows = execute_read_query(session, query)
    return {'rows': rows, 'row_count': len(rows)}


def _build_handlers(low_stock_threshold: int) -> Dict[str, Callable[[Session, Dict[str, Any]], dict]]:
    return {
        'get_sales_summary': lambda s, a: sales_report_service.sales_summary(s),
        'get_sales_by_date_range': lambda s, a: sales_report_service.sales_by_date_range(
            s, _arg(a, 'start_date'), _arg(a, 'end_date'), _arg(a, 'page', 1), _arg(a, 'limit', 50)
        ),
        'get_top_products': lambda s, a: sales_report_service.top_products(
            s, _arg(a, 'limit', 10), _arg(a, 'min_sales', 1)
        ),
        'get_revenue_by_period': lambda s, a: sales_report_service.revenue_by_period(
            s, _arg(a, 'period', 'day'), _arg(a, 'start_date'), _arg(a, 'end_date')
        ),
        'search_sales': lambda s, a: sales_report_service.search_sales(
            s, _arg(a, 'search_term', ''), _arg(a, 'page', 1), _arg(a, 'limit', 50)
        ),
        'get_inventory_status': lambda s, a: inventory_report_service.inventory_status(
            s, _arg(a, 'low_stock_threshold', low_stock_threshold)
        ),
        'get_products_by_price_range': lambda s, a: inventory_report_service.products_by_price_range(s),
        'get_products_turnover': lambda s, a: inventory_report_service.product_turnover(
            s, _arg(a, 'limit', 10)
        ),
        'get_clients_summary': lambda s, a: client_report_service.clients_summary(s),
        'get_top_clients': lambda s, a: client_report_service.top_clients(s, _arg(a, 'limit', 10)),
        'get_clients_by_purchase_frequency': lambda s, a: client_report_service.clients_by_purchase_frequency(s),
        'execute_custom_query': _custom_query,
    }


def list_tools() -> list:
    """Descriptors of every available tool."""
    return TOOLS


def _text_result(payload: Any, is_error: bool = False) -> dict:
    result = {
        'content': [{
            'type': 'text',
            'text': payload if isinstance(payload, str) else json.dumps(payload, indent=2, default=json_default)
        }]
    }
    if is_error:
        result['isError'] = True
    return result


def call_tool(session: Session, name: str, arguments: Optional[Dict[str, Any]] = None,
              cache=None, cache_ttl: Optional[int] = None,
              low_stock_threshold: int = 10) -> dict:
    """
    Run a tool and wrap its result as text content.

    Domain errors (bad arguments, rejected queries, store failures) are
    returned as an error block with ``isError`` set; anything else propagates.

    Args:
        session: SQLAlchemy session
        name: Tool name, see TOOLS
        arguments: Tool arguments (JSON object)
        cache: Optional CacheService for report results
        cache_ttl: TTL for cached results
        low_stock_threshold: Default for get_inventory_status
    """
    handlers = _build_handlers(low_stock_threshold)
    try:
        handler = handlers.get(name)
        if handler is None:
            raise ValidationError(f'Herramienta desconocida: {name}')
        args = arguments if arguments is not None else {}
        if not isinstance(args, dict):
            raise ValidationError('Los argumentos deben ser un objeto JSON')

        def load() -> str:
            return json.dumps(handler(session, args), indent=2, default=json_default)

        if cache is not None and name in CACHEABLE_TOOLS:
            key = f'{name}:{json.dumps(args, sort_keys=True, default=str)}'
            text = cache.memoize(CACHE_MODULE, key, load, cache_ttl)
        else:
            text = load()
        return _text_result(text)

    except SalesError as e:
        error = {
            'error': e.message,
            'tool': name,
            'timestamp': datetime.now().isoformat(),
        }
        if e.payload:
            error['details'] = e.payload
        return _text_result(error, is_error=True)


def invalidate_analytics_cache(cache) -> int:
    """Drop cached tool results after clients, products or sales changed."""
    return cache.invalidate_module(CACHE_MODULE)
