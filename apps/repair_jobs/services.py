from sqlalchemy.orm import Session, joinedload, selectinload, contains_eager
from sqlalchemy import or_, func
from typing import Callable, Optional, Sequence
from datetime import datetime, time, timedelta
from decimal import Decimal
from fastapi import Depends
import logging
import math

from apps.catalog.models import Service
from apps.customers.models import Customer, Motorcycle
from apps.repair_jobs.models import RepairJob, RepairStatus
from apps.repair_jobs.schemas import (
    RepairJobCreate, RepairJobUpdate, RepairJobResponse, RepairJobListResponse,
    RepairJobHistoryFilters, RepairJobWorkflowResponse, WorkflowInfo
)
from apps.repair_jobs import workflow
from core.cache import CacheService, CacheKeys, CacheTTL, get_cache
from core.config import settings
from core.database import get_db
from core.exceptions import BadRequestError, NotFoundError, service_operation

logger = logging.getLogger(__name__)

# Completion estimate
BASE_DAYS_PER_SERVICE = 1
ENGINE_REPAIR_MULTIPLIER = 2
BASIC_MULTIPLIER = 1
COMPLEX_REPAIR_KEYWORDS = ("motor", "engine", "transmisión", "transmission", "caja")


def is_complex_repair(services: Sequence[Service]) -> bool:
    return any(
        keyword in service.name.lower()
        for service in services
        for keyword in COMPLEX_REPAIR_KEYWORDS
    )


def estimate_completion(services: Sequence[Service], now: datetime) -> datetime:
    """One day per service, doubled for engine/transmission work, at midnight."""
    factor = ENGINE_REPAIR_MULTIPLIER if is_complex_repair(services) else BASIC_MULTIPLIER
    days = len(services) * BASE_DAYS_PER_SERVICE * factor
    return datetime.combine((now + timedelta(days=days)).date(), time.min)


def page_size(limit: Optional[int]) -> int:
    return max(1, min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE))


def build_page(jobs, total: int, skip: int, limit: int) -> RepairJobListResponse:
    return RepairJobListResponse(
        items=[RepairJobResponse.model_validate(job) for job in jobs],
        total=total,
        page=(skip // limit) + 1,
        size=limit,
        total_pages=math.ceil(total / limit),
    )


class RepairJobService:
    def __init__(self, db: Session, cache: CacheService, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.cache = cache
        self.clock = clock

    def _eager_options(self):
        return (
            joinedload(RepairJob.motorcycle).joinedload(Motorcycle.customer),
            selectinload(RepairJob.services),
        )

    def _find(self, job_id: str) -> Optional[RepairJob]:
        return (
            self.db.query(RepairJob)
            .options(*self._eager_options())
            .filter(RepairJob.id == job_id)
            .first()
        )

    def _get_or_404(self, job_id: str) -> RepairJob:
        job = self._find(job_id)
        if not job:
            raise NotFoundError("Repair job not found")
        return job

    def _invalidate(self, job_id: Optional[str] = None):
        """Job lists and statistics are always dropped wholesale."""
        if job_id:
            self.cache.delete(CacheKeys.repair_job(job_id))
        self.cache.delete_pattern(CacheKeys.repair_jobs_pattern())
        self.cache.delete(CacheKeys.statistics())

    @service_operation("Error creating repair job")
    def create(self, job_data: RepairJobCreate) -> RepairJobResponse:
        """Create a PENDING job priced from its services"""
        motorcycle = self.db.query(Motorcycle).filter(Motorcycle.id == job_data.motorcycle_id).first()
        if not motorcycle:
            raise NotFoundError("Motorcycle not found")

        # Repeated or unknown ids both show up as a count mismatch
        services = self.db.query(Service).filter(Service.id.in_(job_data.service_ids)).all()
        if len(services) != len(job_data.service_ids):
            raise BadRequestError("One or more services not found")

        total_cost = sum((Decimal(service.price) for service in services), Decimal("0"))
        estimated_completion = job_data.estimated_completion or estimate_completion(services, self.clock())

        db_job = RepairJob(
            motorcycle_id=motorcycle.id,
            notes=job_data.notes,
            estimated_completion=estimated_completion,
            total_cost=total_cost,
            status=workflow.INITIAL_STATUS,
            services=services,
        )
        self.db.add(db_job)
        self.db.commit()
        self.db.refresh(db_job)

        logger.info(f"Created repair job {db_job.id} for motorcycle {motorcycle.plate} (total {total_cost})")
        self._invalidate()
        return RepairJobResponse.model_validate(db_job)

    @service_operation("Error fetching repair jobs")
    def get_all(
        self,
        status: Optional[RepairStatus] = None,
        motorcycle_id: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> RepairJobListResponse:
        """Active jobs by default; an explicit status selects exactly that status"""
        status = workflow.to_status(status) if status else None
        key = CacheKeys.repair_jobs(status.value if status else None, motorcycle_id, skip, limit)
        size = page_size(limit)

        def fetch():
            query = self.db.query(RepairJob)
            if status:
                query = query.filter(RepairJob.status == status)
            else:
                query = query.filter(RepairJob.status.notin_(list(workflow.TERMINAL_STATUSES)))

            if motorcycle_id:
                query = query.filter(RepairJob.motorcycle_id == motorcycle_id)

            total = query.count()
            jobs = (
                query.options(*self._eager_options())
                .order_by(RepairJob.created_at.desc())
                .offset(skip)
                .limit(size)
                .all()
            )
            return build_page(jobs, total, skip, size).model_dump(mode="json")

        return self.cache.get_or_set(key, fetch, CacheTTL.SHORT, parse=RepairJobListResponse.model_validate)

    @service_operation("Error fetching repair job history")
    def get_history(
        self,
        filters: Optional[RepairJobHistoryFilters] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> RepairJobListResponse:
        """Finished (completed or cancelled) jobs, ordered by when they ended"""
        filters = filters or RepairJobHistoryFilters()
        size = page_size(limit)
        completion_date = func.coalesce(RepairJob.completed_at, RepairJob.updated_at)

        query = (
            self.db.query(RepairJob)
            .join(RepairJob.motorcycle)
            .join(Motorcycle.customer)
            .filter(RepairJob.status.in_(list(workflow.TERMINAL_STATUSES)))
        )

        if filters.start_date:
            query = query.filter(completion_date >= datetime.combine(filters.start_date, time.min))

        if filters.end_date:
            query = query.filter(completion_date <= datetime.combine(filters.end_date, time.max))

        if filters.search and filters.search.strip():
            term = f"%{filters.search.strip()}%"
            query = query.filter(or_(Customer.name.ilike(term), Motorcycle.plate.ilike(term)))

        total = query.count()

        order = completion_date.asc() if filters.sort_order == "asc" else completion_date.desc()
        jobs = (
            query.options(
                contains_eager(RepairJob.motorcycle).contains_eager(Motorcycle.customer),
                selectinload(RepairJob.services),
            )
            .order_by(order)
            .offset(skip)
            .limit(size)
            .all()
        )
        return build_page(jobs, total, skip, size)

    @service_operation("Error fetching repair job")
    def get_by_id(self, job_id: str) -> RepairJobResponse:
        def fetch():
            job = self._find(job_id)
            return RepairJobResponse.model_validate(job).model_dump(mode="json") if job else None

        job = self.cache.get_or_set(
            CacheKeys.repair_job(job_id), fetch, CacheTTL.SHORT, parse=RepairJobResponse.model_validate
        )
        if job is None:
            raise NotFoundError("Repair job not found")
        return job

    @service_operation("Error updating repair job")
    def update(self, job_id: str, job_update: RepairJobUpdate) -> RepairJobResponse:
        """Update notes / estimated completion only"""
        db_job = self._get_or_404(job_id)

        update_data = job_update.model_dump(exclude_unset=True)
        if update_data.get("estimated_completion") is None:
            update_data.pop("estimated_completion", None)

        for field, value in update_data.items():
            setattr(db_job, field, value)

        self.db.commit()
        self.db.refresh(db_job)

        logger.info(f"Updated repair job {db_job.id}")
        self._invalidate(db_job.id)
        return RepairJobResponse.model_validate(db_job)

    @service_operation("Error updating repair job status")
    def update_status(self, job_id: str, new_status: RepairStatus) -> RepairJobResponse:
        db_job = self._get_or_404(job_id)
        previous = db_job.status

        workflow.apply_transition(db_job, new_status, self.clock())

        self.db.commit()
        self.db.refresh(db_job)

        logger.info(f"Repair job {db_job.id} moved from {previous.value} to {db_job.status.value}")
        self._invalidate(db_job.id)
        return RepairJobResponse.model_validate(db_job)

    @service_operation("Error cancelling repair job")
    def cancel(self, job_id: str) -> RepairJobResponse:
        db_job = self._get_or_404(job_id)

        workflow.apply_cancel(db_job, self.clock())

        self.db.commit()
        self.db.refresh(db_job)

        logger.info(f"Cancelled repair job {db_job.id}")
        self._invalidate(db_job.id)
        return RepairJobResponse.model_validate(db_job)

    @service_operation("Error deleting repair job")
    def delete(self, job_id: str) -> bool:
        db_job = self.db.query(RepairJob).filter(RepairJob.id == job_id).first()
        if not db_job:
            raise NotFoundError("Repair job not found")

        workflow.ensure_deletable(db_job)

        self.db.delete(db_job)
        self.db.commit()

        logger.info(f"Deleted repair job {job_id}")
        self._invalidate(job_id)
        return True

    @service_operation("Error fetching workflow information")
    def get_workflow(self, job_id: str) -> RepairJobWorkflowResponse:
        db_job = self.db.query(RepairJob).filter(RepairJob.id == job_id).first()
        if not db_job:
            raise NotFoundError("Repair job not found")

        rule = workflow.get_rule(db_job.status)
        return RepairJobWorkflowResponse(
            repair_job_id=db_job.id,
            workflow=WorkflowInfo(
                current_status=db_job.status,
                allowed_transitions=[s for s in RepairStatus if s in rule.allowed_transitions],
                can_cancel=rule.can_cancel,
                requires_confirmation=rule.requires_confirmation,
            ),
            description=rule.description,
        )


# Dependency injection
def get_repair_job_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> RepairJobService:
    return RepairJobService(db, cache)
