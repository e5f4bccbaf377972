"""
Dashboard statistics: this month against last month.

Months are calendar windows anchored at the service clock's "now", from
the first microsecond of the first day to the last microsecond of the
last day, both inclusive.
"""

from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import Callable, NamedTuple, Tuple, Union
from datetime import datetime, timedelta
from fastapi import Depends
import logging

from apps.customers.models import Customer
from apps.repair_jobs.models import RepairJob, RepairStatus
from apps.statistics.schemas import DashboardStatisticsResponse, TrendMetric
from core.cache import CacheService, CacheKeys, CacheTTL, get_cache
from core.database import get_db
from core.exceptions import service_operation

logger = logging.getLogger(__name__)


class Period(NamedTuple):
    start: datetime
    end: datetime


def month_period(moment: datetime) -> Period:
    start = datetime(moment.year, moment.month, 1)
    if moment.month == 12:
        next_start = datetime(moment.year + 1, 1, 1)
    else:
        next_start = datetime(moment.year, moment.month + 1, 1)
    return Period(start, next_start - timedelta(microseconds=1))


def current_and_previous_month(now: datetime) -> Tuple[Period, Period]:
    current = month_period(now)
    previous = month_period(current.start - timedelta(days=1))
    return current, previous


def percentage_change(current: float, previous: float) -> float:
    if previous == 0:
        return 100 if current > 0 else 0
    return round(((current - previous) / previous) * 100, 2)


def trend(change: float) -> str:
    return "up" if change >= 0 else "down"


def build_metric(current: Union[int, float], previous: Union[int, float]) -> TrendMetric:
    change = percentage_change(current, previous)
    return TrendMetric(value=current, percentage_change=change, trend=trend(change))


class StatisticsService:
    def __init__(self, db: Session, cache: CacheService, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.cache = cache
        self.clock = clock

    def completed_jobs(self, period: Period) -> Tuple[float, int]:
        """Revenue and count of jobs completed inside the period"""
        count, revenue = (
            self.db.query(func.count(RepairJob.id), func.coalesce(func.sum(RepairJob.total_cost), 0))
            .filter(
                RepairJob.status == RepairStatus.COMPLETED,
                RepairJob.completed_at >= period.start,
                RepairJob.completed_at <= period.end,
            )
            .one()
        )
        return float(revenue), int(count)

    def new_customers(self, period: Period) -> int:
        return (
            self.db.query(func.count(Customer.id))
            .filter(Customer.created_at >= period.start, Customer.created_at <= period.end)
            .scalar()
        ) or 0

    def compute(self) -> DashboardStatisticsResponse:
        current, previous = current_and_previous_month(self.clock())

        current_revenue, current_jobs = self.completed_jobs(current)
        previous_revenue, previous_jobs = self.completed_jobs(previous)
        current_clients = self.new_customers(current)
        previous_clients = self.new_customers(previous)

        logger.debug(
            f"Statistics {current.start:%Y-%m}: revenue {current_revenue}, "
            f"jobs {current_jobs}, clients {current_clients}"
        )

        return DashboardStatisticsResponse(
            total_revenue=build_metric(current_revenue, previous_revenue),
            new_clients=build_metric(current_clients, previous_clients),
            jobs_completed=build_metric(current_jobs, previous_jobs),
        )

    @service_operation("Error fetching statistics")
    def get_statistics(self) -> DashboardStatisticsResponse:
        return self.cache.get_or_set(
            CacheKeys.statistics(),
            lambda: self.compute().model_dump(mode="json"),
            CacheTTL.MEDIUM,
            parse=DashboardStatisticsResponse.model_validate,
        )


# Dependency injection
def get_statistics_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> StatisticsService:
    return StatisticsService(db, cache)
