"""Domain services: access gates, membership, tasks, assignments and milestones"""
from novo.services.access import AccessDecision, AccessEvaluator, Role, evaluate
from novo.services.membership import MembershipRegistry, RegisteredMember, PendingMember, dedup_keys
from novo.services.assignments import AssignmentCoordinator, PendingAssignments, merge_assignments
from novo.services.milestones import MilestoneAggregator
from novo.services.hierarchy import TaskHierarchyManager
from novo.services.labels import LabelService
from novo.services.comments import CommentService
from novo.services.projects import ProjectService

__all__ = [
    "AccessDecision",
    "AccessEvaluator",
    "Role",
    "evaluate",
    "MembershipRegistry",
    "RegisteredMember",
    "PendingMember",
    "dedup_keys",
    "AssignmentCoordinator",
    "PendingAssignments",
    "merge_assignments",
    "MilestoneAggregator",
    "TaskHierarchyManager",
    "LabelService",
    "CommentService",
    "ProjectService",
]
