from core.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from apps.catalog.models import generate_id


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), index=True, nullable=False)
    phone = Column(String(15), unique=True, nullable=False)
    email = Column(String(100), unique=True, nullable=True)
    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    motorcycles = relationship("Motorcycle", back_populates="customer", cascade="all, delete-orphan")


class Motorcycle(Base):
    __tablename__ = "motorcycles"

    id = Column(String(36), primary_key=True, default=generate_id)
    plate = Column(String(10), unique=True, index=True, nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    brand_id = Column(String(36), ForeignKey("brands.id", ondelete="RESTRICT"), nullable=False)
    model_id = Column(String(36), ForeignKey("models.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    customer = relationship("Customer", back_populates="motorcycles")
    brand = relationship("Brand")
    model = relationship("VehicleModel")
    repair_jobs = relationship("RepairJob", back_populates="motorcycle", cascade="all, delete-orphan")
