"""
Flask CLI commands.

Commands:
- flask init-db: Create the database schema
- flask seed-demo: Load demo clients, products and sales
- flask call-tool: Run an analytics tool and print its result
"""

import json
import random
from datetime import datetime, timedelta

import click

from sales_api.database import get_database
from sales_api.exceptions import InsufficientStockError
from sales_api.services import client_service, product_service
from sales_api.services.sales_service import create_sale
from sales_api.services.cache_service import get_cache
from sales_api.services.tool_service import call_tool, invalidate_analytics_cache

FIRST_NAMES = ['Ana', 'Luis', 'María', 'Jorge', 'Sofía', 'Carlos', 'Lucía', 'Diego', 'Elena', 'Pablo']
LAST_NAMES = ['García', 'López', 'Martínez', 'Hernández', 'Pérez', 'Sánchez', 'Ramírez', 'Torres']
PRODUCT_NAMES = [
    'Teclado mecánico', 'Mouse inalámbrico', 'Monitor 24"', 'Audífonos', 'Webcam HD',
    'Disco SSD 1TB', 'Memoria USB 64GB', 'Cargador USB-C', 'Hub USB', 'Silla ergonómica',
    'Lámpara LED', 'Router WiFi', 'Tablet 10"', 'Bocina Bluetooth', 'Impresora láser',
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create all tables."""
        database = get_database()
        if drop:
            database.drop_all()
            click.echo(click.style('Tablas eliminadas.', fg='yellow'))
        database.create_all()
        click.echo(click.style('Base de datos inicializada.', fg='green', bold=True))

    @app.cli.command('seed-demo')
    @click.option('--clients', 'n_clients', default=10, show_default=True, help='Clients to create')
    @click.option('--products', 'n_products', default=15, show_default=True, help='Products to create')
    @click.option('--sales', 'n_sales', default=50, show_default=True, help='Sales to attempt')
    @click.option('--days', default=90, show_default=True, help='Spread sale dates over this many days')
    @click.option('--seed', default=None, type=int, help='Random seed for reproducible data')
    def seed_demo(n_clients, n_products, n_sales, days, seed):
        """Load demo data. Sales go through the regular sale workflow."""
        rng = random.Random(seed)
        session = get_database().session
        suffix = datetime.now().strftime('%Y%m%d%H%M%S')

        client_ids = []
        for i in range(n_clients):
            first, last = rng.choice(FIRST_NAMES), rng.choice(LAST_NAMES)
            client = client_service.create_client(session, {
                'name': f'{first} {last}',
                'email': f'{first.lower()}.{last.lower()}.{i}.{suffix}@example.com',
                'phone': f'55{rng.randint(10000000, 99999999)}'
            })
            client_ids.append(client.id)

        product_ids = []
        for i in range(n_products):
            product = product_service.create_product(session, {
                'name': f'{PRODUCT_NAMES[i % len(PRODUCT_NAMES)]} #{i + 1}',
                'price': f'{rng.uniform(50, 5000):.2f}',
                'stock': rng.randint(0, 100)
            })
            product_ids.append(product.id)

        created, skipped = 0, 0
        now = datetime.now()
        for _ in range(n_sales):
            items = [
                {'product_id': pid, 'quantity': rng.randint(1, 5)}
                for pid in rng.sample(product_ids, k=min(len(product_ids), rng.randint(1, 3)))
            ]
            sale_date = now - timedelta(days=rng.randint(0, days), minutes=rng.randint(0, 1440))
            try:
                create_sale(session, rng.choice(client_ids), items, clock=lambda: sale_date)
                created += 1
            except InsufficientStockError:
                skipped += 1

        invalidate_analytics_cache(get_cache())

        click.echo(click.style('Datos de demostración cargados.', fg='green', bold=True))
        click.echo(f'   Clientes: {len(client_ids)}')
        click.echo(f'   Productos: {len(product_ids)}')
        click.echo(f'   Ventas: {created} (omitidas por stock: {skipped})')

    @app.cli.command('call-tool')
    @click.argument('name')
    @click.option('--args', 'raw_args', default='{}', help='Tool arguments as a JSON object')
    def call_tool_command(name, raw_args):
        """Run an analytics tool and print its text result."""
        try:
            arguments = json.loads(raw_args)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f'JSON inválido: {e}', param_hint='--args')

        result = call_tool(
            get_database().session,
            name,
            arguments,
            low_stock_threshold=app.config.get('LOW_STOCK_THRESHOLD', 10)
        )
        for block in result['content']:
            click.echo(block['text'])
        if result.get('isError'):
            raise SystemExit(1)
