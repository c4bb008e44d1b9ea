"""Product model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func
from sales_api.database import Base


class Product(Base):
    """Product model. ``stock`` is only mutated through the inventory service."""

    __tablename__ = 'products'
    __table_args__ = (
        CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
        CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )

    id = Column(BigInteger().with_variant(Integer(), 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    image_path = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def to_summary(self):
        return {'id': self.id, 'name': self.name, 'price': self.price}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'stock': self.stock,
            'image_path': self.image_path,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
