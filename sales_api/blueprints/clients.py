"""Clients blueprint (JSON API)."""
from flask import Blueprint, request, jsonify, current_app

from sales_api.database import get_session
from sales_api.exceptions import ValidationError
from sales_api.services import client_service
from sales_api.services.cache_service import get_cache
from sales_api.services.tool_service import invalidate_analytics_cache

clients_bp = Blueprint('clients', __name__, url_prefix='/api/clients')


@clients_bp.route('', methods=['POST'])
def create_client():
    """Create a client."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Se espera un cuerpo JSON')

    client = client_service.create_client(get_session(), data)
    invalidate_analytics_cache(get_cache())
    current_app.logger.info(f"Client created: id={client.id}")
    return jsonify({'message': 'Cliente creado', 'data': client.to_dict()}), 201


@clients_bp.route('', methods=['GET'])
def list_clients():
    clients = client_service.list_clients(get_session())
    return jsonify({'count': len(clients), 'data': [c.to_dict() for c in clients]})


@clients_bp.route('/<int:client_id>', methods=['GET'])
def get_client(client_id: int):
    client = client_service.get_client(get_session(), client_id)
    return jsonify({'data': client.to_dict()})
