"""
Base Repository

Provides common database operations for repositories.
"""

from typing import Generic, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen_assistant.db.models import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class with common database operations.

    Provides generic methods that can be inherited by specific repositories.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize the repository.

        Args:
            model: The SQLAlchemy model class
            session: The async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Fields to create the record with

        Returns:
            The created model instance
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def count(self, *conditions) -> int:
        result = await self.session.execute(select(func.count()).select_from(self.model).where(*conditions))
        return int(result.scalar_one())

