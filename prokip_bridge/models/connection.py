"""
Connection Models
=================

Store connections and the per-user Prokip configuration.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship

from .base import BaseModel

class Connection(BaseModel):
    """Credentials and sync settings for one store on one platform."""
    __tablename__ = 'connections'

    user_id = Column(Integer, nullable=False, index=True)
    platform = Column(String(30), nullable=False, index=True)
    store_name = Column(String(150))
    store_url = Column(String(255), nullable=False, index=True)

    # Stored either plain or as an encrypted JSON envelope
    consumer_key = Column(Text)
    consumer_secret = Column(Text)
    woo_username = Column(String(150))
    woo_app_password = Column(Text)

    status = Column(String(20), nullable=False, default='connected')
    sync_enabled = Column(Boolean, nullable=False, default=True)
    last_sync = Column(DateTime)

    sales_logs = relationship('SalesLog', back_populates='connection', cascade='all, delete-orphan', passive_deletes=True)
    inventory_logs = relationship('InventoryLog', back_populates='connection', cascade='all, delete-orphan', passive_deletes=True)
    inventory_caches = relationship('InventoryCache', back_populates='connection', cascade='all, delete-orphan', passive_deletes=True)
    sync_errors = relationship('SyncError', back_populates='connection', cascade='all, delete-orphan', passive_deletes=True)

    def __repr__(self):
        return f'<Connection {self.platform} {self.store_url}>'

class ProkipConfig(BaseModel):
    """Prokip tokens and location for one user."""
    __tablename__ = 'prokip_configs'

    user_id = Column(Integer, nullable=False, unique=True, index=True)
    # Bridge bearer token issued at login; survives Prokip token refreshes
    api_token = Column(String(64), unique=True, index=True)
    token = Column(Text)
    refresh_token = Column(Text)
    expires_at = Column(DateTime)
    api_url = Column(String(255))
    location_id = Column(String(50))

    def __repr__(self):
        return f'<ProkipConfig user={self.user_id} location={self.location_id}>'
