"""
Integration tests for the analytics tools endpoints, health check and metrics.
"""

import json

from sales_api.services.cache_service import CacheService


def _text_payload(response):
    body = response.get_json()
    return body, json.loads(body['content'][0]['text'])


class TestToolsAPI:

    def test_list_tools(self, client):
        response = client.get('/api/tools')
        assert response.status_code == 200
        names = {tool['name'] for tool in response.get_json()['tools']}
        assert {'get_sales_summary', 'get_inventory_status', 'execute_custom_query'} <= names

    def test_call_without_body(self, client):
        response = client.post('/api/tools/get_sales_summary')
        assert response.status_code == 200
        body, payload = _text_payload(response)
        assert 'isError' not in body
        assert payload['total_sales'] == 0

    def test_arguments_wrapper(self, client, product_p):
        response = client.post('/api/tools/get_inventory_status', json={'arguments': {'low_stock_threshold': 5}})
        _, payload = _text_payload(response)
        assert payload['low_stock_alert']['threshold'] == 5
        assert payload['low_stock_alert']['count'] == 1

    def test_arguments_in_body(self, client, product_p):
        response = client.post('/api/tools/get_inventory_status', json={'low_stock_threshold': 2})
        _, payload = _text_payload(response)
        assert payload['low_stock_alert']['count'] == 0

    def test_default_threshold_from_config(self, app, client, product_p):
        app.config['LOW_STOCK_THRESHOLD'] = 7
        _, payload = _text_payload(client.post('/api/tools/get_inventory_status', json={}))
        assert payload['low_stock_alert']['threshold'] == 7

    def test_unknown_tool_is_error_block(self, client):
        response = client.post('/api/tools/nope', json={})
        assert response.status_code == 200
        body, payload = _text_payload(response)
        assert body['isError'] is True
        assert payload['tool'] == 'nope'

    def test_custom_query_rejected(self, client, session, product_p):
        product_id = product_p.id
        response = client.post('/api/tools/execute_custom_query', json={'query': 'SELECT 1; DROP TABLE products'})

        body, payload = _text_payload(response)
        assert body['isError'] is True
        assert payload['details']['rule'] == 'destructive_keyword'
        assert client.get(f'/api/products/{product_id}').status_code == 200

    def test_custom_query_accepted(self, client, product_p):
        response = client.post('/api/tools/execute_custom_query', json={'query': 'SELECT COUNT(*) AS n FROM products'})
        _, payload = _text_payload(response)
        assert payload == {'rows': [{'n': 1}], 'row_count': 1}

    def test_reports_see_new_sales(self, client, client_a, product_p):
        client_id, product_id = client_a.id, product_p.id
        client.post('/api/sales', json={'client_id': client_id, 'products': [{'product_id': product_id, 'quantity': 2}]})

        _, payload = _text_payload(client.post('/api/tools/get_top_products', json={}))
        assert payload['top_products'][0]['product_id'] == product_id
        assert payload['top_products'][0]['units_sold'] == 2


class TestCacheInvalidation:

    def test_sale_creation_invalidates_analytics(self, app, client, client_a, product_p, monkeypatch):
        invalidated = []
        monkeypatch.setattr(CacheService, 'invalidate_module', lambda self, module: invalidated.append(module) or 0)
        client_id, product_id = client_a.id, product_p.id

        response = client.post('/api/sales', json={'client_id': client_id, 'products': [{'product_id': product_id, 'quantity': 1}]})
        sale_id = response.get_json()['data']['id']
        client.delete(f'/api/sales/{sale_id}/cancel')

        assert invalidated == ['analytics', 'analytics']

    def test_product_creation_invalidates_analytics(self, client, monkeypatch):
        invalidated = []
        monkeypatch.setattr(CacheService, 'invalidate_module', lambda self, module: invalidated.append(module) or 0)

        response = client.post('/api/products', json={'name': 'Monitor', 'price': '1999.90', 'stock': 4})

        assert response.status_code == 201
        assert invalidated == ['analytics']

    def test_client_creation_invalidates_analytics(self, client, monkeypatch):
        invalidated = []
        monkeypatch.setattr(CacheService, 'invalidate_module', lambda self, module: invalidated.append(module) or 0)

        response = client.post('/api/clients', json={'name': 'Sofía Ramírez', 'email': 'sofia@example.com'})

        assert response.status_code == 201
        assert invalidated == ['analytics']

    def test_rejected_product_does_not_invalidate(self, client, monkeypatch):
        invalidated = []
        monkeypatch.setattr(CacheService, 'invalidate_module', lambda self, module: invalidated.append(module) or 0)

        assert client.post('/api/products', json={'name': '', 'price': '1.00', 'stock': 1}).status_code == 400
        assert invalidated == []

    def test_seed_demo_invalidates_analytics(self, app, monkeypatch):
        invalidated = []
        monkeypatch.setattr(CacheService, 'invalidate_module', lambda self, module: invalidated.append(module) or 0)

        result = app.test_cli_runner().invoke(args=[
            'seed-demo', '--clients', '2', '--products', '2', '--sales', '3', '--seed', '7'
        ])

        assert result.exit_code == 0, result.output
        assert invalidated == ['analytics']

    def test_disabled_cache_degrades_gracefully(self, app):
        cache = app.extensions['cache']
        assert cache.is_available() is False
        assert cache.get('analytics', 'k') is None
        assert cache.set('analytics', 'k', {'a': 1}) is False
        assert cache.memoize('analytics', 'k', lambda: 'loaded') == 'loaded'
        assert cache.invalidate_module('analytics') == 0


class TestHealthAndMetrics:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        body = response.get_json()
        assert body['status'] == 'ok'
        assert body['database'] == 'ok'

    def test_metrics_endpoint(self, client, client_a, product_p):
        client_id, product_id = client_a.id, product_p.id
        client.post('/api/sales', json={'client_id': client_id, 'products': [{'product_id': product_id, 'quantity': 1}]})

        response = client.get('/metrics')
        assert response.status_code == 200
        text = response.get_data(as_text=True)
        assert 'http_requests_total' in text
        assert 'sales_created_total' in text

    def test_tool_calls_are_counted_by_outcome(self, client):
        client.post('/api/tools/get_sales_summary', json={})
        client.post('/api/tools/no_such_tool', json={})

        text = client.get('/metrics').get_data(as_text=True)
        assert 'tool_calls_total{outcome="ok",tool="get_sales_summary"}' in text
        assert 'tool_calls_total{outcome="error",tool="unknown"}' in text
        assert 'no_such_tool' not in text
