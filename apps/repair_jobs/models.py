from core.database import Base
from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey, Table, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from apps.catalog.models import generate_id


class RepairStatus(str, enum.Enum):
    PENDING = "pending"
    IN_REPAIR = "in_repair"
    WAITING_FOR_PARTS = "waiting_for_parts"
    READY_FOR_PICKUP = "ready_for_pickup"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


repair_job_services = Table(
    "repair_job_services",
    Base.metadata,
    Column("repair_job_id", String(36), ForeignKey("repair_jobs.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", String(36), ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class RepairJob(Base):
    __tablename__ = "repair_jobs"

    id = Column(String(36), primary_key=True, default=generate_id)

    # Status and tracking
    status = Column(SQLEnum(RepairStatus), default=RepairStatus.PENDING, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    estimated_completion = Column(DateTime, nullable=True)

    # Fixed at creation from the attached services
    total_cost = Column(Numeric(10, 2), nullable=True)

    # Set once, never reset
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    motorcycle_id = Column(String(36), ForeignKey("motorcycles.id", ondelete="CASCADE"), nullable=False, index=True)
    motorcycle = relationship("Motorcycle", back_populates="repair_jobs")
    services = relationship("Service", secondary=repair_job_services, back_populates="repair_jobs")
