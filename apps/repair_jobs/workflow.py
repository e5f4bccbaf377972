"""
Repair job workflow.

WORKFLOW_RULES is the single authority on which status changes are legal.
It is built once at import and never mutated, so it can be read from any
request without locking. Rules depend on the job's current status only.
"""

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import FrozenSet, Mapping

from apps.repair_jobs.models import RepairStatus
from core.exceptions import BadRequestError


@dataclass(frozen=True)
class WorkflowRule:
    allowed_transitions: FrozenSet[RepairStatus]
    can_cancel: bool
    requires_confirmation: bool
    description: str


WORKFLOW_RULES: Mapping[RepairStatus, WorkflowRule] = MappingProxyType({
    RepairStatus.PENDING: WorkflowRule(
        allowed_transitions=frozenset({RepairStatus.IN_REPAIR, RepairStatus.CANCELLED}),
        can_cancel=True,
        requires_confirmation=False,
        description="Job received, waiting to start repair",
    ),
    RepairStatus.IN_REPAIR: WorkflowRule(
        allowed_transitions=frozenset({
            RepairStatus.WAITING_FOR_PARTS,
            RepairStatus.READY_FOR_PICKUP,
            RepairStatus.CANCELLED,
        }),
        can_cancel=True,
        requires_confirmation=False,
        description="Motorcycle is being repaired",
    ),
    RepairStatus.WAITING_FOR_PARTS: WorkflowRule(
        allowed_transitions=frozenset({RepairStatus.IN_REPAIR, RepairStatus.CANCELLED}),
        can_cancel=True,
        requires_confirmation=False,
        description="Waiting for replacement parts to arrive",
    ),
    RepairStatus.READY_FOR_PICKUP: WorkflowRule(
        allowed_transitions=frozenset({RepairStatus.COMPLETED}),
        can_cancel=False,
        requires_confirmation=True,
        description="Repair completed, waiting for customer pickup",
    ),
    RepairStatus.COMPLETED: WorkflowRule(
        allowed_transitions=frozenset(),
        can_cancel=False,
        requires_confirmation=False,
        description="Job completed and motorcycle picked up",
    ),
    RepairStatus.CANCELLED: WorkflowRule(
        allowed_transitions=frozenset(),
        can_cancel=False,
        requires_confirmation=False,
        description="Job was cancelled",
    ),
})

INITIAL_STATUS = RepairStatus.PENDING
TERMINAL_STATUSES = frozenset({RepairStatus.COMPLETED, RepairStatus.CANCELLED})
DELETABLE_STATUSES = frozenset({RepairStatus.PENDING, RepairStatus.CANCELLED})


def to_status(value) -> RepairStatus:
    try:
        return RepairStatus(value)
    except ValueError:
        raise BadRequestError(f"Unknown repair status: {value}")


def get_rule(status: RepairStatus) -> WorkflowRule:
    return WORKFLOW_RULES[to_status(status)]


def can_transition(current: RepairStatus, target: RepairStatus) -> bool:
    return to_status(target) in get_rule(current).allowed_transitions


def can_cancel(status: RepairStatus) -> bool:
    return get_rule(status).can_cancel


def is_deletable(status: RepairStatus) -> bool:
    return to_status(status) in DELETABLE_STATUSES


def apply_transition(job, target: RepairStatus, now: datetime) -> None:
    """
    Move job to target, stamping started_at / completed_at the first time
    IN_REPAIR / COMPLETED is entered. Raises BadRequestError, leaving the
    job untouched, when the edge is not in the rule table.
    """
    target = to_status(target)
    current = to_status(job.status)
    if not can_transition(current, target):
        raise BadRequestError(f"Cannot change status from {current.value} to {target.value}")

    job.status = target
    if target == RepairStatus.IN_REPAIR and job.started_at is None:
        job.started_at = now
    if target == RepairStatus.COMPLETED and job.completed_at is None:
        job.completed_at = now


def apply_cancel(job, now: datetime) -> None:
    """Cancel job; completed_at doubles as the 'ended at' marker."""
    if not can_cancel(job.status):
        raise BadRequestError(
            f"A job in status {to_status(job.status).value} cannot be cancelled"
        )
    job.status = RepairStatus.CANCELLED
    if job.completed_at is None:
        job.completed_at = now


def ensure_deletable(job) -> None:
    if not is_deletable(job.status):
        raise BadRequestError("Only pending or cancelled jobs can be deleted")
