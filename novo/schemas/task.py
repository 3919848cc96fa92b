"""Schemas for tasks"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from novo.schemas.assignment import AssignmentResponse
from novo.schemas.label import LabelSummary

StatusValue = Literal["not-started", "in-progress", "completed", "blocked"]
PriorityValue = Literal["low", "medium", "high"]


class TaskCreate(BaseModel):
    title: str
    completed: bool = False
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: PriorityValue = "medium"
    status: Optional[StatusValue] = None
    label_ids: List[int] = Field(default_factory=list)
    assignee_ids: List[int] = Field(default_factory=list)
    milestone_id: Optional[int] = None
    parent_task_id: Optional[int] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[PriorityValue] = None
    status: Optional[StatusValue] = None
    label_ids: Optional[List[int]] = None


class TaskStatusUpdate(BaseModel):
    status: StatusValue


class SubtaskProgressResponse(BaseModel):
    completed: int
    total: int


class TaskResponse(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str]
    status: str
    priority: Optional[str]
    due_date: Optional[datetime]
    milestone_id: Optional[int]
    parent_task_id: Optional[int]
    attachments_count: int
    created_at: datetime
    updated_at: datetime
    labels: List[LabelSummary] = []
    assignees: List[AssignmentResponse] = []
    subtasks: List["TaskResponse"] = []
    subtask_progress: Optional[SubtaskProgressResponse] = None


class StatusChangeResponse(BaseModel):
    task: TaskResponse
    parent_progress: Optional[SubtaskProgressResponse] = None
    milestone_id: Optional[int] = None
    milestone_completed_tasks_count: Optional[int] = None
    milestone_all_tasks_count: Optional[int] = None


class TaskDeletedResponse(BaseModel):
    id: int
    parent_progress: Optional[SubtaskProgressResponse] = None
    orphaned_subtask_ids: List[int] = []


TaskResponse.model_rebuild()
