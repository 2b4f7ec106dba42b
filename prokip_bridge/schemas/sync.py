from pydantic import Field
from datetime import datetime
from typing import Optional, Literal

from .base import BaseSchema

class OrderSyncRequestSchema(BaseSchema):
    connection_id: Optional[int] = None
    lookback_days: Optional[int] = Field(None, ge=1, le=90)

class ProductSyncRequestSchema(BaseSchema):
    method: Literal['push', 'pull']

class RecoveryRequestSchema(BaseSchema):
    error_id: Optional[int] = None

class SalesLogSchema(BaseSchema):
    id: int
    connection_id: int
    source: str
    order_id: str
    order_number: Optional[str] = None
    prokip_sell_id: Optional[str] = None
    customer_name: Optional[str] = None
    total_amount: Optional[float] = None
    status: Optional[str] = None
    order_date: Optional[datetime] = None
    synced_at: Optional[datetime] = None
