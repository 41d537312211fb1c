from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.business.catalog.schemas import ProductCreate, ProductRead, ProductUpdate
from app.business.catalog.service import catalog_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.core.rbac import require_roles
from app.platform.security.context import Actor, Role


router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=list[ProductRead])
def list_products(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[ProductRead]:
    return catalog_service.list_products(db, actor, include_inactive=include_inactive)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN)),
) -> ProductRead:
    return catalog_service.create_product(db, actor, payload)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(
    product_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> ProductRead:
    return catalog_service.get_product(db, actor, product_id)


@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN)),
) -> ProductRead:
    return catalog_service.update_product(db, actor, product_id, payload)
