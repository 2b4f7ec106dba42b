from pydantic import Field, field_validator, model_validator
from datetime import datetime
from typing import Optional

from .base import BaseSchema, TimestampMixin

SUPPORTED_PLATFORMS = ('woocommerce',)

class ConnectionBase(BaseSchema):
    platform: str = Field('woocommerce', max_length=30)
    store_name: Optional[str] = Field(None, max_length=150)
    store_url: str = Field(max_length=255)

    @field_validator('platform')
    @classmethod
    def validate_platform(cls, v: str) -> str:
        v = v.lower()
        if v not in SUPPORTED_PLATFORMS:
            raise ValueError(f"Unsupported platform '{v}'")
        return v

class ConnectionCreateSchema(ConnectionBase):
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    woo_username: Optional[str] = None
    woo_app_password: Optional[str] = None
    sync_enabled: bool = True
    register_webhooks: bool = True

    @model_validator(mode='after')
    def require_credentials(self):
        has_keys = bool(self.consumer_key and self.consumer_secret)
        has_app_password = bool(self.woo_username and self.woo_app_password)
        if not (has_keys or has_app_password):
            raise ValueError('Either consumer key/secret or username/application password is required')
        return self

class ConnectionTestSchema(ConnectionCreateSchema):
    register_webhooks: bool = False

class ConnectionUpdateSchema(BaseSchema):
    store_name: Optional[str] = Field(None, max_length=150)
    consumer_key: Optional[str] = None
    consumer_secret: Optional[str] = None
    woo_username: Optional[str] = None
    woo_app_password: Optional[str] = None
    sync_enabled: Optional[bool] = None
    status: Optional[str] = Field(None, max_length=20)

class ConnectionSchema(ConnectionBase, TimestampMixin):
    """Response schema; credentials are never returned."""
    id: int
    user_id: int
    status: str
    sync_enabled: bool
    last_sync: Optional[datetime] = None
