"""Pydantic Schemas for Request/Response Validation"""
from novo.schemas.user import UserSummary
from novo.schemas.project import ProjectCreate, ProjectUpdate, ProjectResponse, AccessResponse, TaskCountsResponse
from novo.schemas.project_member import (
    MemberCandidate,
    MembersAdd,
    MemberRoleUpdate,
    ActiveMemberResponse,
    PendingMemberResponse,
)
from novo.schemas.label import LabelCreate, LabelUpdate, LabelSummary, LabelResponse
from novo.schemas.assignment import AssignUsers, AssignmentResponse
from novo.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskStatusUpdate,
    SubtaskProgressResponse,
    TaskResponse,
    StatusChangeResponse,
    TaskDeletedResponse,
)
from novo.schemas.milestone import MilestoneCreate, MilestoneUpdate, MilestoneTasksAdd, MilestoneResponse
from novo.schemas.comment import TaskCommentCreate, TaskCommentUpdate, TaskCommentResponse

__all__ = [
    "UserSummary",
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectResponse",
    "AccessResponse",
    "TaskCountsResponse",
    "MemberCandidate",
    "MembersAdd",
    "MemberRoleUpdate",
    "ActiveMemberResponse",
    "PendingMemberResponse",
    "LabelCreate",
    "LabelUpdate",
    "LabelSummary",
    "LabelResponse",
    "AssignUsers",
    "AssignmentResponse",
    "TaskCreate",
    "TaskUpdate",
    "TaskStatusUpdate",
    "SubtaskProgressResponse",
    "TaskResponse",
    "StatusChangeResponse",
    "TaskDeletedResponse",
    "MilestoneCreate",
    "MilestoneUpdate",
    "MilestoneTasksAdd",
    "MilestoneResponse",
    "TaskCommentCreate",
    "TaskCommentUpdate",
    "TaskCommentResponse",
]
