"""Task model definitions."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task workflow statuses."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class TaskBase(BaseModel):
    """Base task fields."""

    title: str
    project_id: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO


class TaskCreate(TaskBase):
    """Task creation model."""

    pass


class TaskUpdate(BaseModel):
    """Task update model - all fields optional."""

    title: Optional[str] = None
    project_id: Optional[str] = None
    status: Optional[TaskStatus] = None


class Task(TaskBase):
    """Full task model with database fields."""

    id: str = Field(alias="_id", serialization_alias="id")
    created_by: str
    created_at: datetime
    updated_at: datetime

    model_config = {"populate_by_name": True}
