"""
Base Service Classes
====================

Base classes and utilities shared by all services.
"""

from abc import ABC
from typing import Optional, Dict, Any
from datetime import datetime
from functools import wraps
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from .exceptions import NotFoundError

logger = logging.getLogger(__name__)

def transactional(func):
    """Decorator for automatic commit/rollback around a service method"""
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            result = await func(self, *args, **kwargs)
            if getattr(self, 'db_session', None) is not None:
                await self.db_session.commit()
            return result
        except Exception as e:
            if getattr(self, 'db_session', None) is not None:
                await self.db_session.rollback()
            logger.error(f"Transaction failed in {func.__name__}: {str(e)}")
            raise
    return wrapper

class BaseService(ABC):
    """Base service class with common functionality"""

    def __init__(self, db_session: AsyncSession, current_user: Optional[int] = None):
        self.db_session = db_session
        self.current_user = current_user
        self.logger = logging.getLogger(self.__class__.__name__)

    async def _get_or_404(self, model_class, entity_id: int):
        """Get entity by ID or raise 404 error"""
        result = await self.db_session.execute(select(model_class).filter(model_class.id == entity_id))
        entity = result.scalars().first()
        if not entity:
            raise NotFoundError(model_class.__name__, entity_id)
        return entity

    async def _paginate_query(self, query, page: int = 1, per_page: int = 20,
                              max_per_page: int = 100) -> Dict[str, Any]:
        """Paginate query results"""
        per_page = min(per_page, max_per_page)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db_session.execute(count_query)).scalar()

        offset = (page - 1) * per_page
        items_result = await self.db_session.execute(query.offset(offset).limit(per_page))
        items = items_result.scalars().all()

        return {
            'items': items,
            'total': total,
            'page': page,
            'per_page': per_page,
        }

    @staticmethod
    def _now() -> datetime:
        return datetime.utcnow()
