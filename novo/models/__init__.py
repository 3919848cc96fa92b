"""Novo Database Models"""
from novo.models.user import User
from novo.models.project import Project
from novo.models.project_member import ProjectMember, MemberRole
from novo.models.invitation import Invitation
from novo.models.task import Task, TaskStatus, TaskPriority, task_labels
from novo.models.milestone import Milestone
from novo.models.label import Label
from novo.models.assignment import Assignment
from novo.models.task_comment import TaskComment

__all__ = [
    "User",
    "Project",
    "ProjectMember",
    "MemberRole",
    "Invitation",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "task_labels",
    "Milestone",
    "Label",
    "Assignment",
    "TaskComment",
]
