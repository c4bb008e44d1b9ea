"""Analytics tools blueprint for the AI assistant."""
from flask import Blueprint, request, jsonify, current_app

from sales_api.blueprints.metrics import record_tool_call
from sales_api.database import get_session
from sales_api.services.cache_service import get_cache
from sales_api.services.tool_service import TOOL_NAMES, list_tools, call_tool

tools_bp = Blueprint('tools', __name__, url_prefix='/api/tools')


@tools_bp.route('', methods=['GET'])
def index():
    return jsonify({'tools': list_tools()})


@tools_bp.route('/<string:name>', methods=['POST'])
def invoke(name: str):
    """
    Call a tool. The JSON body holds the tool arguments, either directly or
    under an "arguments" key.
    """
    body = request.get_json(silent=True)
    if isinstance(body, dict) and isinstance(body.get('arguments'), dict):
        arguments = body['arguments']
    else:
        arguments = body if body is not None else {}

    result = call_tool(
        get_session(),
        name,
        arguments,
        cache=get_cache(),
        cache_ttl=current_app.config.get('CACHE_ANALYTICS_TTL'),
        low_stock_threshold=current_app.config.get('LOW_STOCK_THRESHOLD', 10)
    )
    record_tool_call(name, name in TOOL_NAMES, bool(result.get('isError')))
    if result.get('isError'):
        current_app.logger.warning(f"Tool {name} failed: {result['content'][0]['text']}")
    return jsonify(result)
