from pydantic import BaseModel
from typing import Literal, Union


class TrendMetric(BaseModel):
    value: Union[int, float]
    percentage_change: float
    trend: Literal["up", "down"]


class DashboardStatisticsResponse(BaseModel):
    total_revenue: TrendMetric
    new_clients: TrendMetric
    jobs_completed: TrendMetric
