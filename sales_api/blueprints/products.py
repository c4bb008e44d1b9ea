"""Products blueprint (JSON API)."""
from flask import Blueprint, request, jsonify, current_app

from sales_api.database import get_session
from sales_api.exceptions import ValidationError
from sales_api.services import product_service
from sales_api.services.cache_service import get_cache
from sales_api.services.tool_service import invalidate_analytics_cache

products_bp = Blueprint('products', __name__, url_prefix='/api/products')


@products_bp.route('', methods=['POST'])
def create_product():
    """Create a product."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Se espera un cuerpo JSON')

    product = product_service.create_product(get_session(), data)
    invalidate_analytics_cache(get_cache())
    current_app.logger.info(f"Product created: id={product.id} stock={product.stock}")
    return jsonify({'message': 'Producto creado', 'data': product.to_dict()}), 201


@products_bp.route('', methods=['GET'])
def list_products():
    products = product_service.list_products(get_session())
    return jsonify({'count': len(products), 'data': [p.to_dict() for p in products]})


@products_bp.route('/<int:product_id>', methods=['GET'])
def get_product(product_id: int):
    product = product_service.get_product(get_session(), product_id)
    return jsonify({'data': product.to_dict()})
