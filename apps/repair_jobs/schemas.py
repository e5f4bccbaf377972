from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime, date
from decimal import Decimal

from apps.repair_jobs.models import RepairStatus
from apps.catalog.schemas import ServiceResponse
from apps.customers.schemas import MotorcycleSummary


class RepairJobCreate(BaseModel):
    motorcycle_id: str
    service_ids: List[str] = Field(..., min_length=1, description="At least one service is required")
    notes: Optional[str] = None
    estimated_completion: Optional[datetime] = None


class RepairJobUpdate(BaseModel):
    notes: Optional[str] = None
    estimated_completion: Optional[datetime] = None


class RepairJobStatusUpdate(BaseModel):
    status: RepairStatus


class RepairJobResponse(BaseModel):
    id: str
    status: RepairStatus
    notes: Optional[str] = None
    estimated_completion: Optional[datetime] = None
    total_cost: Optional[Decimal] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    motorcycle_id: str
    motorcycle: Optional[MotorcycleSummary] = None
    services: List[ServiceResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RepairJobListResponse(BaseModel):
    items: List[RepairJobResponse]
    total: int
    page: int
    size: int
    total_pages: int


class RepairJobHistoryFilters(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    search: Optional[str] = Field(None, description="Customer name or plate")
    sort_order: Literal["asc", "desc"] = "desc"


class WorkflowInfo(BaseModel):
    current_status: RepairStatus
    allowed_transitions: List[RepairStatus]
    can_cancel: bool
    requires_confirmation: bool


class RepairJobWorkflowResponse(BaseModel):
    repair_job_id: str
    workflow: WorkflowInfo
    description: str
