"""Stock operation model - outcome of each stock side effect of a sale."""
import enum
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from crm.database import Base, IdType


class StockOperationType(str, enum.Enum):
    RESERVE = 'reserve'
    UNRESERVE = 'unreserve'
    DEDUCT = 'deduct'
    RESTORE = 'restore'


class StockOperationStatus(str, enum.Enum):
    APPLIED = 'applied'
    FAILED = 'failed'
    SUPERSEDED = 'superseded'


class StockOperation(Base):
    """
    Compensating-transaction ledger of sale stock effects.

    A failed row means the sale status moved on while inventory did not;
    `flask replay-stock-operations` retries it. A superseded row was
    skipped because the sale no longer needed it.
    """

    __tablename__ = 'stock_operation'

    id = Column(IdType, primary_key=True, autoincrement=True)
    organization_id = Column(IdType, ForeignKey('organization.id'), nullable=False, index=True)
    sale_id = Column(IdType, ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    operation = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=1)
    created_by = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StockOperation(sale_id={self.sale_id}, operation='{self.operation}', status='{self.status}')>"
