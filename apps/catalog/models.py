from core.database import Base
from sqlalchemy import Column, String, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid


def generate_id() -> str:
    return str(uuid.uuid4())


class Brand(Base):
    __tablename__ = "brands"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(50), unique=True, index=True, nullable=False)
    logo_url = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    models = relationship("VehicleModel", back_populates="brand", cascade="all, delete-orphan")


class VehicleModel(Base):
    """A motorcycle model (e.g. "CG 160") belonging to one brand."""
    __tablename__ = "models"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(50), index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    brand = relationship("Brand", back_populates="models")


class Service(Base):
    """A priced catalog item a repair job can include."""
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), index=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    repair_jobs = relationship("RepairJob", secondary="repair_job_services", back_populates="services")
