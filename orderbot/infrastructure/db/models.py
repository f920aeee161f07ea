from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship

from orderbot.infrastructure.db.base import Base


class OrderRecord(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_customer_status", "customer_id", "status"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(40), unique=True, nullable=False, index=True)
    customer_id = Column(String(20), nullable=False)
    # Snapshot of the cart: [{product_id, name, unit_price, quantity}, ...]
    items = Column(JSON, nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    status = Column(String(40), nullable=False, default="PENDING_VENDOR_CONFIRMATION")

    customer_name = Column(String(120))
    address = Column(Text)
    payment_method = Column(String(20))
    latitude = Column(Float)
    longitude = Column(Float)

    vendor_id = Column(String(20), index=True)
    vendor_name = Column(String(120))
    delivery_partner_id = Column(String(20), index=True)
    delivery_partner_name = Column(String(120))
    rating = Column(Integer)

    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    events = relationship("OrderEvent", back_populates="order", order_by="OrderEvent.id")


class OrderEvent(Base):
    """Append-only history of status changes."""

    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    from_status = Column(String(40))
    to_status = Column(String(40), nullable=False)
    actor_id = Column(String(20))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    order = relationship("OrderRecord", back_populates="events")


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    latitude = Column(Float)
    longitude = Column(Float)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class DeliveryPartner(Base):
    __tablename__ = "delivery_partners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class VerifiedCustomer(Base):
    __tablename__ = "verified_customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(120))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))


class WhatsAppDeadLetter(Base):
    __tablename__ = "whatsapp_dead_letters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    to_number = Column(String(20), nullable=False, index=True)
    payload = Column(Text, nullable=False)
    failure_reason = Column(String(50), nullable=False)
    last_error = Column(Text)
    retry_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
