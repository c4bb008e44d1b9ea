"""Client management service."""
import re
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sales_api.database import unit_of_work
from sales_api.exceptions import ValidationError, ClientNotFoundError, StoreFailure
from sales_api.models import Client

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def create_client(session: Session, data: dict) -> Client:
    """
    Create a client from request data.

    Raises:
        ValidationError: missing name, invalid or already registered email
    """
    name = _clean(data.get('name'))
    email = _clean(data.get('email'))
    if not name:
        raise ValidationError('El nombre del cliente es obligatorio')
    if len(name) > 100:
        raise ValidationError('El nombre no puede superar 100 caracteres')
    if not email or not EMAIL_PATTERN.match(email):
        raise ValidationError('Email inválido. Use formato: user@example.com')

    existing = session.query(Client).filter(func.lower(Client.email) == email.lower()).first()
    if existing:
        raise ValidationError(f'Ya existe un cliente con el email {email}')

    try:
        with unit_of_work(session):
            client = Client(
                name=name,
                email=email,
                phone=_clean(data.get('phone')),
                address=_clean(data.get('address'))
            )
            session.add(client)
            session.flush()
    except StoreFailure as e:
        # Race condition: another request registered the same email
        if isinstance(e.__cause__, IntegrityError):
            raise ValidationError(f"Ya existe un cliente con el email {email}") from e
        raise
    return client


def get_client(session: Session, client_id: int) -> Client:
    client = session.get(Client, client_id)
    if client is None:
        raise ClientNotFoundError(client_id)
    return client


def list_clients(session: Session) -> List[Client]:
    return session.query(Client).order_by(Client.name, Client.id).all()
