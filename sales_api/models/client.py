"""Client model."""
from sqlalchemy import Column, BigInteger, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sales_api.database import Base


class Client(Base):
    """Client (cliente)."""

    __tablename__ = 'clients'

    id = Column(BigInteger().with_variant(Integer(), 'sqlite'), primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, unique=True)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    sales = relationship('Sale', back_populates='client')

    def to_summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}', email='{self.email}')>"
