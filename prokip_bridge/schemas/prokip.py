from pydantic import Field
from datetime import datetime
from typing import Optional

from .base import BaseSchema

class ProkipLoginSchema(BaseSchema):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    user_id: int = Field(1, gt=0)
    location_id: Optional[str] = None

class ProkipLocationSchema(BaseSchema):
    location_id: str = Field(min_length=1, max_length=50)

class ProkipConfigSchema(BaseSchema):
    user_id: int
    location_id: Optional[str] = None
    api_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    authenticated: bool = False
