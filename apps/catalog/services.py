from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional
from fastapi import Depends
from pydantic import TypeAdapter
import logging

from apps.catalog.models import Brand, VehicleModel, Service
from apps.catalog.schemas import (
    BrandCreate, BrandUpdate, BrandResponse,
    ModelCreate, ModelUpdate, ModelResponse,
    ServiceCreate, ServiceUpdate, ServiceResponse
)
from core.cache import CacheService, CacheKeys, CacheTTL, get_cache
from core.database import get_db
from core.exceptions import BadRequestError, NotFoundError, service_operation

logger = logging.getLogger(__name__)

# Parsers for cached list payloads
BRAND_LIST = TypeAdapter(List[BrandResponse])
MODEL_LIST = TypeAdapter(List[ModelResponse])
SERVICE_LIST = TypeAdapter(List[ServiceResponse])


def normalize_name(name: str) -> str:
    return name.strip().lower()


def find_by_name(db: Session, entity, name: str, exclude_id: Optional[str] = None):
    """Case and whitespace insensitive name lookup"""
    query = db.query(entity).filter(func.lower(func.trim(entity.name)) == normalize_name(name))
    if exclude_id:
        query = query.filter(entity.id != exclude_id)
    return query.first()


class BrandService:
    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache

    def _invalidate(self, brand_id: Optional[str] = None):
        if brand_id:
            self.cache.delete(CacheKeys.brand(brand_id))
            # Model payloads are scoped by brand
            self.cache.delete(CacheKeys.models(brand_id))
        self.cache.delete(CacheKeys.brands())

    def _get_or_404(self, brand_id: str) -> Brand:
        db_brand = self.db.query(Brand).filter(Brand.id == brand_id).first()
        if not db_brand:
            raise NotFoundError("Brand not found")
        return db_brand

    @service_operation("Error creating brand")
    def create_brand(self, brand: BrandCreate) -> BrandResponse:
        if find_by_name(self.db, Brand, brand.name):
            raise BadRequestError(f"A brand named '{brand.name}' already exists")

        db_brand = Brand(name=brand.name.strip(), logo_url=brand.logo_url)
        self.db.add(db_brand)
        self.db.commit()
        self.db.refresh(db_brand)

        logger.info(f"Created brand: {db_brand.name} (ID: {db_brand.id})")
        self._invalidate()
        return BrandResponse.model_validate(db_brand)

    @service_operation("Error fetching brands")
    def get_brands(self) -> List[BrandResponse]:
        def fetch():
            brands = self.db.query(Brand).order_by(Brand.name).all()
            return [BrandResponse.model_validate(b).model_dump(mode="json") for b in brands]

        return self.cache.get_or_set(CacheKeys.brands(), fetch, CacheTTL.LONG, parse=BRAND_LIST.validate_python)

    @service_operation("Error fetching brand")
    def get_brand(self, brand_id: str) -> BrandResponse:
        def fetch():
            db_brand = self.db.query(Brand).filter(Brand.id == brand_id).first()
            return BrandResponse.model_validate(db_brand).model_dump(mode="json") if db_brand else None

        brand = self.cache.get_or_set(CacheKeys.brand(brand_id), fetch, CacheTTL.LONG, parse=BrandResponse.model_validate)
        if brand is None:
            raise NotFoundError("Brand not found")
        return brand

    @service_operation("Error updating brand")
    def update_brand(self, brand_id: str, brand_update: BrandUpdate) -> BrandResponse:
        db_brand = self._get_or_404(brand_id)

        update_data = brand_update.model_dump(exclude_unset=True)
        if update_data.get("name"):
            if find_by_name(self.db, Brand, update_data["name"], exclude_id=brand_id):
                raise BadRequestError(f"Another brand named '{update_data['name']}' already exists")
            update_data["name"] = update_data["name"].strip()

        for field, value in update_data.items():
            # logo_url is the only field that may be cleared
            if value is not None or field == "logo_url":
                setattr(db_brand, field, value)

        self.db.commit()
        self.db.refresh(db_brand)

        logger.info(f"Updated brand {db_brand.name} (ID: {db_brand.id})")
        self._invalidate(brand_id)
        return BrandResponse.model_validate(db_brand)

    @service_operation("Error deleting brand")
    def delete_brand(self, brand_id: str) -> bool:
        """Delete a brand and, through the cascade, its models"""
        db_brand = self._get_or_404(brand_id)
        model_ids = [m.id for m in db_brand.models]
        name = db_brand.name

        self.db.delete(db_brand)
        self.db.commit()

        logger.info(f"Deleted brand {name} and {len(model_ids)} model(s)")
        self._invalidate(brand_id)
        self.cache.delete(CacheKeys.models())
        for model_id in model_ids:
            self.cache.delete(CacheKeys.model(model_id))
        return True


class ModelService:
    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache

    def _invalidate(self, model_id: Optional[str], *brand_ids: str):
        if model_id:
            self.cache.delete(CacheKeys.model(model_id))
        for brand_id in dict.fromkeys(b for b in brand_ids if b):
            self.cache.delete(CacheKeys.models(brand_id))
        self.cache.delete(CacheKeys.models())

    def _get_or_404(self, model_id: str) -> VehicleModel:
        db_model = self.db.query(VehicleModel).filter(VehicleModel.id == model_id).first()
        if not db_model:
            raise NotFoundError("Model not found")
        return db_model

    def _ensure_brand(self, brand_id: str):
        if not self.db.query(Brand).filter(Brand.id == brand_id).first():
            raise NotFoundError("Brand not found")

    @service_operation("Error creating model")
    def create_model(self, model: ModelCreate) -> ModelResponse:
        self._ensure_brand(model.brand_id)
        if find_by_name(self.db, VehicleModel, model.name):
            raise BadRequestError(f"A model named '{model.name}' already exists")

        db_model = VehicleModel(name=model.name.strip(), brand_id=model.brand_id)
        self.db.add(db_model)
        self.db.commit()
        self.db.refresh(db_model)

        logger.info(f"Created model: {db_model.name} (ID: {db_model.id})")
        self._invalidate(None, db_model.brand_id)
        return ModelResponse.model_validate(db_model)

    @service_operation("Error fetching models")
    def get_models(self, brand_id: str) -> List[ModelResponse]:
        def fetch():
            models = (
                self.db.query(VehicleModel)
                .filter(VehicleModel.brand_id == brand_id)
                .order_by(VehicleModel.name)
                .all()
            )
            return [ModelResponse.model_validate(m).model_dump(mode="json") for m in models]

        return self.cache.get_or_set(CacheKeys.models(brand_id), fetch, CacheTTL.LONG, parse=MODEL_LIST.validate_python)

    @service_operation("Error fetching model")
    def get_model(self, model_id: str, brand_id: Optional[str] = None) -> ModelResponse:
        def fetch():
            db_model = self.db.query(VehicleModel).filter(VehicleModel.id == model_id).first()
            return ModelResponse.model_validate(db_model).model_dump(mode="json") if db_model else None

        model = self.cache.get_or_set(CacheKeys.model(model_id), fetch, CacheTTL.LONG, parse=ModelResponse.model_validate)
        if model is None or (brand_id and model.brand_id != brand_id):
            raise NotFoundError("Model not found")
        return model

    @service_operation("Error updating model")
    def update_model(self, model_id: str, model_update: ModelUpdate) -> ModelResponse:
        db_model = self._get_or_404(model_id)
        old_brand_id = db_model.brand_id

        update_data = model_update.model_dump(exclude_unset=True)
        if update_data.get("name"):
            if find_by_name(self.db, VehicleModel, update_data["name"], exclude_id=model_id):
                raise BadRequestError(f"Another model named '{update_data['name']}' already exists")
            update_data["name"] = update_data["name"].strip()

        if update_data.get("brand_id") and update_data["brand_id"] != old_brand_id:
            self._ensure_brand(update_data["brand_id"])

        for field, value in update_data.items():
            if value is not None:
                setattr(db_model, field, value)

        self.db.commit()
        self.db.refresh(db_model)

        logger.info(f"Updated model {db_model.name} (ID: {db_model.id})")
        # Both the old and the new brand listing change when the model moves
        self._invalidate(model_id, old_brand_id, db_model.brand_id)
        return ModelResponse.model_validate(db_model)

    @service_operation("Error deleting model")
    def delete_model(self, model_id: str) -> bool:
        db_model = self._get_or_404(model_id)
        brand_id = db_model.brand_id
        name = db_model.name

        self.db.delete(db_model)
        self.db.commit()

        logger.info(f"Deleted model {name} (ID: {model_id})")
        self._invalidate(model_id, brand_id)
        return True


class ServiceCatalogService:
    """Priced services a repair job can be made of."""

    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache

    def _invalidate(self, service_id: Optional[str] = None):
        if service_id:
            self.cache.delete(CacheKeys.service(service_id))
            # Job payloads embed their services
            self.cache.delete_pattern(CacheKeys.repair_job_pattern())
            self.cache.delete_pattern(CacheKeys.repair_jobs_pattern())
        self.cache.delete(CacheKeys.services())

    def _get_or_404(self, service_id: str) -> Service:
        db_service = self.db.query(Service).filter(Service.id == service_id).first()
        if not db_service:
            raise NotFoundError("Service not found")
        return db_service

    @service_operation("Error creating service")
    def create_service(self, service: ServiceCreate) -> ServiceResponse:
        if find_by_name(self.db, Service, service.name):
            raise BadRequestError(f"A service named '{service.name}' already exists")

        db_service = Service(name=service.name.strip(), price=service.price)
        self.db.add(db_service)
        self.db.commit()
        self.db.refresh(db_service)

        logger.info(f"Created service: {db_service.name} (ID: {db_service.id})")
        self._invalidate()
        return ServiceResponse.model_validate(db_service)

    @service_operation("Error fetching services")
    def get_services(self) -> List[ServiceResponse]:
        def fetch():
            services = self.db.query(Service).order_by(Service.name).all()
            return [ServiceResponse.model_validate(s).model_dump(mode="json") for s in services]

        return self.cache.get_or_set(CacheKeys.services(), fetch, CacheTTL.LONG, parse=SERVICE_LIST.validate_python)

    @service_operation("Error fetching service")
    def get_service(self, service_id: str) -> ServiceResponse:
        def fetch():
            db_service = self.db.query(Service).filter(Service.id == service_id).first()
            return ServiceResponse.model_validate(db_service).model_dump(mode="json") if db_service else None

        service = self.cache.get_or_set(
            CacheKeys.service(service_id), fetch, CacheTTL.LONG, parse=ServiceResponse.model_validate
        )
        if service is None:
            raise NotFoundError("Service not found")
        return service

    @service_operation("Error updating service")
    def update_service(self, service_id: str, service_update: ServiceUpdate) -> ServiceResponse:
        db_service = self._get_or_404(service_id)

        update_data = service_update.model_dump(exclude_unset=True)
        if update_data.get("name"):
            if find_by_name(self.db, Service, update_data["name"], exclude_id=service_id):
                raise BadRequestError(f"Another service named '{update_data['name']}' already exists")
            update_data["name"] = update_data["name"].strip()

        for field, value in update_data.items():
            if value is not None:
                setattr(db_service, field, value)

        self.db.commit()
        self.db.refresh(db_service)

        logger.info(f"Updated service {db_service.name} (ID: {db_service.id})")
        self._invalidate(service_id)
        return ServiceResponse.model_validate(db_service)

    @service_operation("Error deleting service")
    def delete_service(self, service_id: str) -> bool:
        db_service = self._get_or_404(service_id)
        name = db_service.name

        self.db.delete(db_service)
        self.db.commit()

        logger.info(f"Deleted service {name} (ID: {service_id})")
        self._invalidate(service_id)
        return True


# Dependency injection
def get_brand_service(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> BrandService:
    return BrandService(db, cache)


def get_model_service(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)) -> ModelService:
    return ModelService(db, cache)


def get_service_catalog_service(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
) -> ServiceCatalogService:
    return ServiceCatalogService(db, cache)
