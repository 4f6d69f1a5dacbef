"""
SQLAlchemy ORM models for the Stock service.

Defines the database schema for the stock items table.
"""
from sqlalchemy import CheckConstraint, Column, Integer, String, Text
from .database import Base

class StockItem(Base):
    """
    Stock item model representing the quantity of one SKU held by one store.

    Attributes:
        sku (str): Stock Keeping Unit, unique within a store
        store (str): Identifier of the store owning the stock
        quantity (int): Quantity available, never negative
        description (str): Optional free-text description
    """
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_items_quantity_nonneg"),
    )

    sku = Column(String, primary_key=True)
    store = Column(String, primary_key=True)
    quantity = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<StockItem store={self.store!r} sku={self.sku!r} quantity={self.quantity}>"
