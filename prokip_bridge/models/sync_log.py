"""
Sync Log Models
===============

Dedup, inventory, error and webhook records written by the sync services.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, Text, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import BaseModel

class SalesLog(BaseModel):
    """One row per externally observed order; existence means processed."""
    __tablename__ = 'sales_logs'
    __table_args__ = (
        UniqueConstraint('connection_id', 'source', 'order_id', name='uq_sales_log_order'),
    )

    connection_id = Column(Integer, ForeignKey('connections.id', ondelete='CASCADE'), nullable=False, index=True)
    source = Column(String(30), nullable=False)
    order_id = Column(String(64), nullable=False, index=True)
    order_number = Column(String(64))
    prokip_sell_id = Column(String(64))
    customer_name = Column(String(150))
    customer_email = Column(String(150))
    total_amount = Column(Float, default=0)
    status = Column(String(30), default='completed')
    order_date = Column(DateTime)
    synced_at = Column(DateTime, default=datetime.utcnow)

    connection = relationship('Connection', back_populates='sales_logs')

    def __repr__(self):
        return f'<SalesLog {self.source}:{self.order_id}>'

class InventoryLog(BaseModel):
    """Last known local stock per SKU per connection."""
    __tablename__ = 'inventory_logs'
    __table_args__ = (
        UniqueConstraint('connection_id', 'sku', name='uq_inventory_log_sku'),
    )

    connection_id = Column(Integer, ForeignKey('connections.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(String(64))
    product_name = Column(String(255))
    sku = Column(String(100), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Float, default=0)
    last_synced = Column(DateTime, default=datetime.utcnow)

    connection = relationship('Connection', back_populates='inventory_logs')

class InventoryCache(BaseModel):
    """Last stock quantity pushed to a store per SKU."""
    __tablename__ = 'inventory_caches'
    __table_args__ = (
        UniqueConstraint('connection_id', 'sku', name='uq_inventory_cache_sku'),
    )

    connection_id = Column(Integer, ForeignKey('connections.id', ondelete='CASCADE'), nullable=False, index=True)
    sku = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    connection = relationship('Connection', back_populates='inventory_caches')

class SyncError(BaseModel):
    """Failed sync attempt, kept for recovery and manual inspection."""
    __tablename__ = 'sync_errors'

    connection_id = Column(Integer, ForeignKey('connections.id', ondelete='CASCADE'), nullable=True, index=True)
    error_type = Column(String(30), nullable=False, index=True)
    error_message = Column(Text, nullable=False)
    error_details = Column(JSON)
    resolved = Column(Boolean, nullable=False, default=False, index=True)
    resolved_at = Column(DateTime)
    recovery_attempts = Column(Integer, nullable=False, default=0)
    last_recovery_at = Column(DateTime)
    auto_recovered = Column(Boolean, nullable=False, default=False)

    connection = relationship('Connection', back_populates='sync_errors')

    def __repr__(self):
        return f'<SyncError {self.error_type} resolved={self.resolved}>'

class WebhookEvent(BaseModel):
    """Raw inbound webhook payload plus processed flag."""
    __tablename__ = 'webhook_events'

    connection_id = Column(Integer, ForeignKey('connections.id', ondelete='SET NULL'), nullable=True, index=True)
    platform = Column(String(30), nullable=False)
    topic = Column(String(100))
    payload = Column(JSON)
    processed = Column(Boolean, nullable=False, default=False)
    processed_at = Column(DateTime)
    error = Column(Text)
