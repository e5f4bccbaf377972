from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List
from datetime import datetime


class CustomerWithMotorcycleCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_phone: str = Field(..., min_length=1, max_length=15)
    customer_email: Optional[EmailStr] = None
    motorcycle_plate: str = Field(..., min_length=1, max_length=10)
    brand_id: str
    model_id: str


class CustomerWithMotorcycleUpdate(BaseModel):
    customer_name: Optional[str] = Field(None, min_length=1, max_length=100)
    customer_phone: Optional[str] = Field(None, min_length=1, max_length=15)
    customer_email: Optional[EmailStr] = None
    motorcycle_plate: Optional[str] = Field(None, min_length=1, max_length=10)
    brand_id: Optional[str] = None
    model_id: Optional[str] = None


class MotorcycleResponse(BaseModel):
    id: str
    plate: str
    brand_id: str
    model_id: str

    model_config = {"from_attributes": True}


class CustomerResponse(BaseModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    motorcycles: List[MotorcycleResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CustomerSummary(BaseModel):
    id: str
    name: str
    phone: str

    model_config = {"from_attributes": True}


class MotorcycleSummary(BaseModel):
    id: str
    plate: str
    customer: Optional[CustomerSummary] = None

    model_config = {"from_attributes": True}
