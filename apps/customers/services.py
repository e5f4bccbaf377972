from sqlalchemy.orm import Session, selectinload
from typing import List, Optional
from fastapi import Depends
from pydantic import TypeAdapter
import logging

from apps.catalog.models import Brand, VehicleModel
from apps.customers.models import Customer, Motorcycle
from apps.customers.schemas import (
    CustomerWithMotorcycleCreate, CustomerWithMotorcycleUpdate, CustomerResponse
)
from core.cache import CacheService, CacheKeys, CacheTTL, get_cache
from core.database import get_db
from core.exceptions import BadRequestError, NotFoundError, service_operation

logger = logging.getLogger(__name__)

CUSTOMER_LIST = TypeAdapter(List[CustomerResponse])


class CustomerService:
    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache

    def _invalidate(self, customer_id: Optional[str] = None, jobs: bool = False):
        if customer_id:
            self.cache.delete(CacheKeys.customer(customer_id))
        if jobs:
            self.cache.delete_pattern(CacheKeys.repair_job_pattern())
            self.cache.delete_pattern(CacheKeys.repair_jobs_pattern())
        self.cache.delete(CacheKeys.customers())
        # New-client counts feed the dashboard
        self.cache.delete(CacheKeys.statistics())

    def _ensure_brand_and_model(self, brand_id: str, model_id: str):
        if not self.db.query(Brand).filter(Brand.id == brand_id).first():
            raise NotFoundError("Brand not found")
        model = self.db.query(VehicleModel).filter(VehicleModel.id == model_id).first()
        if not model:
            raise NotFoundError("Model not found")
        if model.brand_id != brand_id:
            raise BadRequestError("The model does not belong to the selected brand")

    def _plate_taken(self, plate: str, exclude_id: Optional[str] = None) -> bool:
        query = self.db.query(Motorcycle).filter(Motorcycle.plate == plate.strip().upper())
        if exclude_id:
            query = query.filter(Motorcycle.id != exclude_id)
        return query.first() is not None

    @service_operation("Error registering customer")
    def create_customer(self, data: CustomerWithMotorcycleCreate) -> CustomerResponse:
        """Register a customer together with their motorcycle in one transaction"""
        if self._plate_taken(data.motorcycle_plate):
            raise BadRequestError("A motorcycle with this plate already exists")

        if data.customer_email:
            if self.db.query(Customer).filter(Customer.email == data.customer_email).first():
                raise BadRequestError("A customer with this email already exists")

        if self.db.query(Customer).filter(Customer.phone == data.customer_phone).first():
            raise BadRequestError("A customer with this phone number already exists")

        self._ensure_brand_and_model(data.brand_id, data.model_id)

        customer = Customer(
            name=data.customer_name.strip(),
            phone=data.customer_phone,
            email=data.customer_email,
        )
        self.db.add(customer)
        self.db.flush()  # Flush to get ID without committing

        self.db.add(Motorcycle(
            plate=data.motorcycle_plate.strip().upper(),
            brand_id=data.brand_id,
            model_id=data.model_id,
            customer_id=customer.id,
        ))
        self.db.commit()
        self.db.refresh(customer)

        logger.info(f"Registered customer {customer.name} (ID: {customer.id})")
        self._invalidate()
        return CustomerResponse.model_validate(customer)

    @service_operation("Error fetching customer")
    def get_customer(self, customer_id: str) -> CustomerResponse:
        def fetch():
            customer = (
                self.db.query(Customer)
                .options(selectinload(Customer.motorcycles))
                .filter(Customer.id == customer_id)
                .first()
            )
            return CustomerResponse.model_validate(customer).model_dump(mode="json") if customer else None

        customer = self.cache.get_or_set(
            CacheKeys.customer(customer_id), fetch, CacheTTL.MEDIUM, parse=CustomerResponse.model_validate
        )
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    @service_operation("Error fetching customers")
    def get_customers(self) -> List[CustomerResponse]:
        """All customers with their motorcycles, newest first"""
        def fetch():
            customers = (
                self.db.query(Customer)
                .options(selectinload(Customer.motorcycles))
                .order_by(Customer.created_at.desc())
                .all()
            )
            return [CustomerResponse.model_validate(c).model_dump(mode="json") for c in customers]

        return self.cache.get_or_set(CacheKeys.customers(), fetch, CacheTTL.MEDIUM, parse=CUSTOMER_LIST.validate_python)

    @service_operation("Error updating customer")
    def update_customer(self, customer_id: str, data: CustomerWithMotorcycleUpdate) -> CustomerResponse:
        """Partial update of the customer and their first motorcycle"""
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")

        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("customer_name"):
            customer.name = update_data["customer_name"].strip()
        phone = update_data.get("customer_phone")
        if phone and phone != customer.phone:
            if self.db.query(Customer).filter(Customer.phone == phone, Customer.id != customer_id).first():
                raise BadRequestError("A customer with this phone number already exists")
            customer.phone = phone

        if "customer_email" in update_data:
            email = update_data["customer_email"]
            if email and self.db.query(Customer).filter(Customer.email == email, Customer.id != customer_id).first():
                raise BadRequestError("A customer with this email already exists")
            customer.email = email

        motorcycle = customer.motorcycles[0] if customer.motorcycles else None
        if motorcycle:
            plate = update_data.get("motorcycle_plate")
            if plate and plate.strip().upper() != motorcycle.plate:
                if self._plate_taken(plate, exclude_id=motorcycle.id):
                    raise BadRequestError("A motorcycle with this plate already exists")
                motorcycle.plate = plate.strip().upper()

            brand_id = update_data.get("brand_id") or motorcycle.brand_id
            model_id = update_data.get("model_id") or motorcycle.model_id
            if (brand_id, model_id) != (motorcycle.brand_id, motorcycle.model_id):
                self._ensure_brand_and_model(brand_id, model_id)
                motorcycle.brand_id = brand_id
                motorcycle.model_id = model_id

        self.db.commit()
        self.db.refresh(customer)

        logger.info(f"Updated customer {customer.name} (ID: {customer.id})")
        # Job payloads show the customer's name and plate
        self._invalidate(customer_id, jobs=True)
        return CustomerResponse.model_validate(customer)

    @service_operation("Error deleting customer")
    def delete_customer(self, customer_id: str) -> bool:
        """Delete a customer with their motorcycles and repair jobs"""
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")

        self.db.delete(customer)
        self.db.commit()

        logger.info(f"Deleted customer {customer_id}")
        self._invalidate(customer_id, jobs=True)
        return True


# Dependency injection
def get_customer_service(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> CustomerService:
    return CustomerService(db, cache)
