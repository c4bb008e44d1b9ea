"""Sale model."""
from sqlalchemy import Column, BigInteger, Integer, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sales_api.database import Base
import enum


class SaleStatus(str, enum.Enum):
    """Sale status enum. Cancellation is terminal."""
    PENDING = 'pending'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class Sale(Base):
    """Sale (venta). ``total`` is always derived from its lines."""

    __tablename__ = 'sales'

    id = Column(BigInteger().with_variant(Integer(), 'sqlite'), primary_key=True, autoincrement=True)
    client_id = Column(BigInteger, ForeignKey('clients.id'), nullable=False, index=True)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(SaleStatus, name='sale_status', values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SaleStatus.PENDING
    )
    sale_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    client = relationship('Client', back_populates='sales')
    lines = relationship(
        'SaleLine',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SaleLine.id'
    )

    @property
    def is_cancelled(self):
        return self.status == SaleStatus.CANCELLED

    def to_dict(self, include_lines=True):
        data = {
            'id': self.id,
            'client_id': self.client_id,
            'total': self.total,
            'status': self.status.value,
            'sale_date': self.sale_date,
            'client': self.client.to_summary() if self.client else None,
        }
        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, status={self.status.value})>"
