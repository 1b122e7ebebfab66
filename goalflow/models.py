import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import field_validator
from sqlalchemy import DateTime, ForeignKey, Index
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class GoalPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class GoalStatus(str, Enum):
    draft = "draft"
    active = "active"
    completed = "completed"
    archived = "archived"


class ReminderChannel(str, Enum):
    email = "email"
    push = "push"


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


class GoalBase(SQLModel):
    """SMART attributes shared by goal schemas"""

    title: str = Field(min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=2000)
    specific: str = Field(min_length=1)
    measurable: str = Field(min_length=1)
    achievable: str = Field(min_length=1)
    relevant: str = Field(min_length=1)
    time_bound: datetime


class Goal(GoalBase, table=True):
    """Database model"""

    __tablename__ = "goals"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(index=True)
    # stored lowercase so a normalized filter value is the stored value
    priority: str = Field(default=GoalPriority.medium.value, max_length=16)
    status: str = Field(default=GoalStatus.active.value, max_length=16)
    time_bound: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )


class GoalCreate(GoalBase):
    """Schema for creating a goal"""

    priority: GoalPriority = GoalPriority.medium

    @field_validator("time_bound")
    @classmethod
    def time_bound_in_future(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value <= get_utc_now():
            raise ValueError("time_bound must be in the future")
        return value


class GoalUpdate(SQLModel):
    """Schema for updating a goal - all fields optional"""

    title: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = Field(default=None, max_length=2000)
    specific: str | None = Field(default=None, min_length=1)
    measurable: str | None = Field(default=None, min_length=1)
    achievable: str | None = Field(default=None, min_length=1)
    relevant: str | None = Field(default=None, min_length=1)
    time_bound: datetime | None = None
    priority: GoalPriority | None = None
    status: GoalStatus | None = None


class GoalSummary(SQLModel):
    """One row of a goals list page"""

    id: uuid.UUID
    title: str
    description: str | None = None
    priority: str
    status: str
    time_bound: datetime
    created_at: datetime

    model_config = {"from_attributes": True}


class GoalDetail(GoalBase):
    """Schema for single goal responses"""

    id: uuid.UUID
    user_id: uuid.UUID
    priority: str
    status: str
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class GoalPage(SQLModel):
    items: list[GoalSummary]
    page: int
    page_size: int
    total: int


# ---------------------------------------------------------------------------
# Progress logs
# ---------------------------------------------------------------------------


class ProgressLog(SQLModel, table=True):
    __tablename__ = "progress_logs"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    goal_id: uuid.UUID = Field(
        sa_column=Column(
            ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    delta: int
    note: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ProgressLogCreate(SQLModel):
    delta: int = Field(ge=-100, le=100)
    note: str | None = Field(default=None, max_length=500)


class ProgressLogRead(SQLModel):
    id: uuid.UUID
    goal_id: uuid.UUID
    delta: int
    note: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


class Reminder(SQLModel, table=True):
    __tablename__ = "reminders"
    __table_args__ = (Index("ix_reminders_active_next_run", "is_active", "next_run"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    goal_id: uuid.UUID = Field(
        sa_column=Column(
            ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
        )
    )
    channel: str = Field(default=ReminderChannel.email.value, max_length=16)
    cron_expr: str = Field(default="0 * * * *", max_length=100)
    next_run: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    is_active: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ReminderCreate(SQLModel):
    goal_id: uuid.UUID
    channel: ReminderChannel = ReminderChannel.email
    cron_expr: str = Field(default="0 * * * *", min_length=1, max_length=100)


class ReminderRead(SQLModel):
    id: uuid.UUID
    goal_id: uuid.UUID
    channel: str
    cron_expr: str
    next_run: datetime | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
