"""Products API router."""
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session
from typing import List, Literal, Optional
from opentelemetry import trace

from auth import Session as AuthSession, optional_session, verify_token
from database import get_db
from dependencies import get_catalog_service, get_review_service
from monitoring import product_views_counter, product_detail_views_counter
from schemas import (
    EligibilityResponse,
    ProductFilter,
    ProductResponse,
    ReviewCreate,
    ReviewResponse,
)
from services.catalog_service import CatalogService
from services.review_service import ReviewService

router = APIRouter(prefix="/products", tags=["products"])


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@router.get("", response_model=List[ProductResponse])
async def list_products(
    category: Optional[str] = Query(None, description="Comma-separated categories (e.g. CPU,GPU)"),
    brand: Optional[str] = Query(None, description="Comma-separated brands"),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    search: Optional[str] = Query(None, description="Matches name, brand or spec summary"),
    sort: Optional[Literal["low", "high", "newest"]] = Query(None),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """
    List products visible to customers.

    Soft-deleted products are never returned. Examples:
    - GET /products?category=CPU,GPU&sort=low
    - GET /products?search=ryzen&maxPrice=25000
    """
    product_filter = ProductFilter(
        categories=_split(category),
        brands=_split(brand),
        max_price=max_price,
        search=search,
        sort=sort
    )
    products = catalog.list_active(db, product_filter)

    span = trace.get_current_span()
    span.set_attribute("product.count", len(products))
    product_views_counter.add(1, {"filtered": str(bool(category or brand or search or max_price))})

    return products


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str = Path(..., description="Product ID"),
    db: Session = Depends(get_db),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Get product details; soft-deleted products are not found."""
    product = catalog.get_active_product(db, product_id)

    product_detail_views_counter.add(1, {"category": product.category})
    return product


@router.get("/{product_id}/reviews", response_model=List[ReviewResponse])
async def list_reviews(
    product_id: str,
    db: Session = Depends(get_db),
    reviews: ReviewService = Depends(get_review_service)
):
    """Reviews of a product, newest first."""
    return reviews.list_reviews(db, product_id)


@router.post("/{product_id}/reviews", response_model=ReviewResponse, status_code=201)
async def submit_review(
    product_id: str,
    request: ReviewCreate,
    db: Session = Depends(get_db),
    session: AuthSession = Depends(verify_token),
    reviews: ReviewService = Depends(get_review_service)
):
    """Submit a review - requires a delivered order containing the product."""
    return reviews.submit_review(
        db=db,
        user_id=session.user_id,
        user_name=session.name,
        product_id=product_id,
        rating=request.rating,
        comment=request.comment
    )


@router.get("/{product_id}/review-eligibility", response_model=EligibilityResponse)
async def review_eligibility(
    product_id: str,
    db: Session = Depends(get_db),
    session: Optional[AuthSession] = Depends(optional_session),
    reviews: ReviewService = Depends(get_review_service)
):
    """Whether the caller may review the product; anonymous callers may not."""
    user_id = session.user_id if session else None
    return reviews.check_eligibility(db, user_id, product_id)
