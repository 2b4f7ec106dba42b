"""
Base Pydantic Schemas
=====================

Base classes shared by all request/response schemas (Pydantic V2).
"""

from pydantic import BaseModel, ConfigDict, model_validator
from datetime import datetime
from typing import Optional, Any

class BaseSchema(BaseModel):
    """Base schema with ORM support and whitespace stripping."""

    model_config = ConfigDict(from_attributes=True, extra='ignore')

    @model_validator(mode='before')
    @classmethod
    def strip_whitespace(cls, data: Any) -> Any:
        """Strip whitespace from string fields before validation."""
        if isinstance(data, dict):
            for key, value in data.items():
                if isinstance(value, str):
                    data[key] = value.strip()
        return data

class TimestampMixin(BaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
