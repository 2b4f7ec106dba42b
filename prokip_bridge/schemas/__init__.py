"""
Pydantic schemas for request validation and response serialization.
"""

from .base import BaseSchema, TimestampMixin
from .connection import (
    ConnectionCreateSchema, ConnectionUpdateSchema, ConnectionTestSchema, ConnectionSchema,
    SUPPORTED_PLATFORMS
)
from .prokip import ProkipLoginSchema, ProkipLocationSchema, ProkipConfigSchema
from .sync import (
    OrderSyncRequestSchema, ProductSyncRequestSchema, RecoveryRequestSchema,
    SalesLogSchema
)
