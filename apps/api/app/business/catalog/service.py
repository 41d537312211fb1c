from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.catalog.models import Product
from app.business.catalog.schemas import ProductCreate, ProductRead, ProductUpdate
from app.business.service_requests.state_machine import dump_images
from app.core.database import transaction
from app.core.errors import ForbiddenError, NotFoundError
from app.platform.security.context import Actor, Role


logger = logging.getLogger("app.catalog")


@dataclass(slots=True)
class CatalogService:
    def list_products(self, session: Session, actor: Actor, *, include_inactive: bool = False) -> list[ProductRead]:
        stmt = select(Product)
        if not (include_inactive and actor.role == Role.ADMIN):
            stmt = stmt.where(Product.is_active.is_(True))
        rows = session.scalars(stmt.order_by(Product.name.asc())).all()
        return [ProductRead.model_validate(row) for row in rows]

    def get_product(self, session: Session, actor: Actor, product_id: uuid.UUID) -> ProductRead:
        product = session.get(Product, product_id)
        if product is None or (not product.is_active and actor.role != Role.ADMIN):
            raise NotFoundError("product")
        return ProductRead.model_validate(product)

    def create_product(self, session: Session, actor: Actor, dto: ProductCreate) -> ProductRead:
        if actor.role != Role.ADMIN:
            raise ForbiddenError("only admins can manage products")
        data = dto.model_dump(mode="python")
        data["images"] = dump_images(data.pop("images"))
        product = Product(**data)
        with transaction(session):
            session.add(product)
            session.flush()
        session.refresh(product)
        logger.info("product.created", extra={"user_id": actor.user_id})
        return ProductRead.model_validate(product)

    def update_product(self, session: Session, actor: Actor, product_id: uuid.UUID, dto: ProductUpdate) -> ProductRead:
        if actor.role != Role.ADMIN:
            raise ForbiddenError("only admins can manage products")
        product = session.get(Product, product_id)
        if product is None:
            raise NotFoundError("product")

        changes = dto.model_dump(mode="python", exclude_unset=True)
        if "images" in changes:
            changes["images"] = dump_images(changes["images"])
        with transaction(session):
            for name, value in changes.items():
                setattr(product, name, value)
        session.refresh(product)
        return ProductRead.model_validate(product)


catalog_service = CatalogService()
