from sqlalchemy import Column, DateTime, Integer
from datetime import datetime

from ..database import Base

# Abstract base with the columns every record carries; not a table itself.
class BaseModel(Base):
    __abstract__ = True
    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
