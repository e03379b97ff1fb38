from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Boolean,
    JSON,
    DateTime,
    ForeignKey,
    Text,
    Index,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


ORDER_STATUSES = ("pending", "preparing", "ready", "completed", "cancelled")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=False, index=True)  # 'carnes', 'charcutería', 'preparados', ...
    price = Column(Numeric(10, 2), nullable=False)  # per unit, kg unless stated
    unit = Column(String(50), nullable=False, default="kg")
    sku = Column(String(50), nullable=True)
    in_stock = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order_items = relationship("OrderItem", back_populates="product")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), nullable=False, unique=True)
    status = Column(String(30), nullable=False, default="pending", index=True)  # see ORDER_STATUSES
    # Display copy of the committed cart lines; the source of truth for "what was ordered"
    items = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    estimated_minutes = Column(Integer, nullable=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    user_id = Column(Integer, nullable=True, index=True)
    guest_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    line_rows = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
    )


class OrderItem(Base):
    """Normalized per-product line, written best-effort for fulfillment tooling."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Numeric(10, 3), nullable=False)  # kilograms
    unit_price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="line_rows")
    product = relationship("Product", back_populates="order_items")


class ChatSession(Base):
    """Persisted conversation state: history, held cart and confirmation state."""
    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(36), nullable=False, unique=True, index=True)
    state = Column(JSON, nullable=False, default=dict)
    # Bumped on every save; saves are compare-and-swap on this column
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
