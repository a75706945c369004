from datetime import datetime
from typing import Optional

from pydantic import Field

from findmyhelper.models.task import TaskStatus
from findmyhelper.schemas.common import ApiModel


class TaskCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    location: str = Field(min_length=1, max_length=255)
    budget: Optional[float] = Field(default=None, ge=0)
    category_id: int


class TaskUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    budget: Optional[float] = Field(default=None, ge=0)
    category_id: Optional[int] = None
    status: Optional[TaskStatus] = None


class TaskResponse(ApiModel):
    id: int
    client_id: int
    category_id: int
    title: str
    description: str
    location: str
    budget: Optional[float] = None
    status: TaskStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
