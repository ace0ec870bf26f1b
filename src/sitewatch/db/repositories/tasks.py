"""Watch task repository for database operations."""

from datetime import datetime, timezone
from typing import Any, cast

from sqlalchemy import CursorResult, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitewatch.db.models import WatchTaskModel


class WatchTaskRepository:
    """Repository for watch task database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **values: Any) -> WatchTaskModel:
        """Insert a new watch task.

        Args:
            **values: Column values; task_id is generated when omitted

        Returns:
            The created WatchTaskModel
        """
        model = WatchTaskModel(**values)
        self.session.add(model)
        await self.session.flush()
        return model

    async def get(
        self, task_id: str, for_update: bool = False
    ) -> WatchTaskModel | None:
        """Get a watch task by ID.

        Args:
            task_id: The task ID to fetch
            for_update: Lock the row until the transaction ends

        Returns:
            WatchTaskModel if found, None otherwise
        """
        stmt = select(WatchTaskModel).where(WatchTaskModel.task_id == task_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> list[WatchTaskModel]:
        """Get all watch tasks in creation order."""
        result = await self.session.execute(
            select(WatchTaskModel).order_by(
                WatchTaskModel.created_at.asc(), WatchTaskModel.task_id.asc()
            )
        )
        return list(result.scalars().all())

    async def save(self, model: WatchTaskModel) -> WatchTaskModel:
        """Flush pending attribute changes on a loaded model."""
        model.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return model

    async def delete(self, task_id: str) -> bool:
        """Delete a watch task.

        Args:
            task_id: The task ID to delete

        Returns:
            True if deleted, False if not found
        """
        result = await self.session.execute(
            delete(WatchTaskModel).where(WatchTaskModel.task_id == task_id)
        )
        return (cast(CursorResult[Any], result).rowcount or 0) > 0
