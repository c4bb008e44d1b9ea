"""Custom exceptions for the sales backend."""


class SalesError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ValidationError(SalesError):
    """Malformed or missing caller input."""
    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)


class RejectedQueryError(SalesError):
    """The safety gate declined a custom query."""
    def __init__(self, reason, rule):
        super().__init__(reason, 400, {'rule': rule})
        self.reason = reason
        self.rule = rule


class NotFoundError(SalesError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ClientNotFoundError(NotFoundError):
    def __init__(self, client_id):
        super().__init__(f'Cliente {client_id} no encontrado', {'client_id': client_id})
        self.client_id = client_id


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        super().__init__(f'Producto {product_id} no encontrado', {'product_id': product_id})
        self.product_id = product_id


class SaleNotFoundError(NotFoundError):
    def __init__(self, sale_id):
        super().__init__(f'Venta {sale_id} no encontrada', {'sale_id': sale_id})
        self.sale_id = sale_id


class InsufficientStockError(SalesError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_id, requested, available, product_name=None):
        label = product_name or f'producto {product_id}'
        message = f"Stock insuficiente para {label}: se requieren {requested}, disponible {available}"
        super().__init__(message, 409, {
            'product_id': product_id,
            'requested': requested,
            'available': available,
        })
        self.product_id = product_id
        self.requested = requested
        self.available = available


class AlreadyCancelledError(SalesError):
    """Cancellation requested on a sale that is already cancelled."""
    def __init__(self, sale_id):
        super().__init__(f'La venta {sale_id} ya está cancelada', 409, {'sale_id': sale_id})
        self.sale_id = sale_id


class StoreFailure(SalesError):
    """Underlying persistence error; the enclosing unit of work was rolled back."""
    def __init__(self, message="Error de base de datos"):
        super().__init__(message, 500)
