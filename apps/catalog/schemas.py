from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal


class BrandBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="Brand name")
    logo_url: Optional[str] = Field(None, max_length=255)


class BrandCreate(BrandBase):
    pass


class BrandUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    logo_url: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None


class BrandResponse(BrandBase):
    id: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ModelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, description="Model name")
    brand_id: str


class ModelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    brand_id: Optional[str] = None
    is_active: Optional[bool] = None


class ModelResponse(BaseModel):
    id: str
    name: str
    brand_id: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ServiceBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Service name")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Price cannot be negative")


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_active: Optional[bool] = None


class ServiceResponse(ServiceBase):
    id: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
