"""Sale Line model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sales_api.database import Base


class SaleLine(Base):
    """Sale Line (detalle de venta). Immutable once created."""

    __tablename__ = 'sale_lines'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_sale_lines_quantity_positive'),
    )

    id = Column(BigInteger().with_variant(Integer(), 'sqlite'), primary_key=True, autoincrement=True)
    sale_id = Column(BigInteger, ForeignKey('sales.id'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('products.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # Price snapshot at the moment of purchase
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    # Relationships
    sale = relationship('Sale', back_populates='lines')
    product = relationship('Product')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'subtotal': self.subtotal,
            'product': {'id': self.product.id, 'name': self.product.name} if self.product else None,
        }

    def __repr__(self):
        return f"<SaleLine(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
