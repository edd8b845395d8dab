"""Admin console API router."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from auth import require_admin
from database import get_db
from dependencies import get_catalog_service, get_order_service
from schemas import AdminProductResponse, OrderResponse, OrderStatusUpdate, ProductWrite
from services.catalog_service import CatalogService
from services.order_service import OrderService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/products", response_model=List[AdminProductResponse])
async def list_products(
    include_deleted: bool = Query(True),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """All products, soft-deleted ones included unless asked otherwise."""
    return catalog.list_all(db, include_deleted=include_deleted)


@router.post("/products", response_model=AdminProductResponse, status_code=201)
async def create_product(
    request: ProductWrite,
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    return catalog.admin_create(db, request)


@router.get("/products/{product_id}", response_model=AdminProductResponse)
async def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    return catalog.get_product(db, product_id)


@router.put("/products/{product_id}", response_model=AdminProductResponse)
async def update_product(
    product_id: str,
    request: ProductWrite,
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Replace a product's editable fields; omitted optional fields are cleared."""
    return catalog.admin_update(db, product_id, request)


@router.delete("/products/{product_id}", response_model=AdminProductResponse)
async def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Soft-delete a product; orders referencing it keep working."""
    return catalog.soft_delete(db, product_id)


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    db: Session = Depends(get_db),
    order_service: OrderService = Depends(get_order_service)
):
    return order_service.list_all_orders(db)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    order_service: OrderService = Depends(get_order_service)
):
    return order_service.get_order(db, order_id)


@router.patch("/orders/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    db: Session = Depends(get_db),
    order_service: OrderService = Depends(get_order_service)
):
    """Move an order along pending -> processing -> shipped -> delivered, or cancel it."""
    return order_service.update_status(db, order_id, request.status)
