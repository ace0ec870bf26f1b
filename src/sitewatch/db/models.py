"""SQLAlchemy ORM models for sitewatch."""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, Enum, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sitewatch.models.watch_task import DayOfWeek, Frequency


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def _enum_values(enum_cls: type[Frequency] | type[DayOfWeek]) -> list[str]:
    return [member.value for member in enum_cls]


class WatchTaskModel(Base):
    """Watch task model holding definition, schedule and last outcome."""

    __tablename__ = "watch_tasks"

    task_id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    website_url: Mapped[str] = mapped_column(Text, nullable=False)
    notification_criteria: Mapped[str] = mapped_column(Text, nullable=False)
    analysis_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    frequency: Mapped[Frequency] = mapped_column(
        Enum(
            Frequency,
            name="watch_frequency",
            values_callable=_enum_values,
            create_constraint=True,
        ),
        nullable=False,
    )
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False)
    day_of_week: Mapped[DayOfWeek | None] = mapped_column(
        Enum(
            DayOfWeek,
            name="watch_day_of_week",
            values_callable=_enum_values,
            create_constraint=True,
        ),
        nullable=True,
    )
    is_running: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    next_scheduled_run: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_result: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_matched_criteria: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    last_test_result: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
