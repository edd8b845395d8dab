"""Product catalog service."""
import logging
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from opentelemetry import trace

from errors import NotFoundError, ValidationError
from models import Product, utcnow
from monitoring import product_mutations_counter
from schemas import ProductFilter, ProductWrite
from services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for reading and administering the product catalog."""

    def __init__(self, settings_service: SettingsService):
        """
        Initialize catalog service.

        Args:
            settings_service: Store settings, consulted for image limits
        """
        self.settings_service = settings_service
        self.tracer = trace.get_tracer(__name__)

    def get_active_product(self, db: Session, product_id: str) -> Product:
        """
        Get a product visible to customers.

        Raises:
            NotFoundError: If the product does not exist or is soft-deleted
        """
        with self.tracer.start_as_current_span("db.query.get_product") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            db_span.set_attribute("product.id", product_id)

            product = db.query(Product).filter(
                Product.id == product_id,
                Product.deleted_at.is_(None)
            ).first()

            db_span.set_attribute("db.rows_returned", 1 if product else 0)

        if product is None:
            raise NotFoundError("Product not found")
        return product

    def get_product(self, db: Session, product_id: str) -> Product:
        """Get a product regardless of its soft-delete marker (admin view)."""
        product = db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")
        return product

    def list_active(self, db: Session, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        """
        List customer-visible products.

        Args:
            db: Database session
            product_filter: Category/brand/price/search filter and sort order

        Returns:
            Products without a soft-delete marker
        """
        product_filter = product_filter or ProductFilter()
        query = db.query(Product).filter(Product.deleted_at.is_(None))

        if product_filter.categories:
            query = query.filter(Product.category.in_(product_filter.categories))
        if product_filter.brands:
            query = query.filter(Product.brand.in_(product_filter.brands))
        if product_filter.max_price is not None:
            query = query.filter(Product.price <= product_filter.max_price)
        if product_filter.search:
            pattern = f"%{product_filter.search}%"
            query = query.filter(or_(
                Product.name.ilike(pattern),
                Product.brand.ilike(pattern),
                Product.specs.ilike(pattern)
            ))

        if product_filter.sort == "low":
            query = query.order_by(Product.price.asc())
        elif product_filter.sort == "high":
            query = query.order_by(Product.price.desc())
        else:
            query = query.order_by(Product.created_at.desc(), Product.id)

        with self.tracer.start_as_current_span("db.query.list_products") as db_span:
            db_span.set_attribute("db.operation", "SELECT")
            db_span.set_attribute("db.table", "products")
            products = query.all()
            db_span.set_attribute("db.rows_returned", len(products))

        return products

    def list_all(self, db: Session, include_deleted: bool = True) -> List[Product]:
        """List products for the admin console, newest first."""
        query = db.query(Product)
        if not include_deleted:
            query = query.filter(Product.deleted_at.is_(None))
        return query.order_by(Product.created_at.desc(), Product.id).all()

    def _check_images(self, db: Session, images: List[str]) -> None:
        limit = self.settings_service.get_settings(db).get("maxProductImages")
        if isinstance(limit, int) and len(images) > limit:
            raise ValidationError(f"A product can have at most {limit} images")

    @staticmethod
    def _apply(product: Product, data: ProductWrite) -> None:
        # Whitelisted fields only; rating, review_count and deleted_at are never written here
        product.name = data.name
        product.category = data.category
        product.brand = data.brand
        product.price = data.price
        product.sale_price = data.sale_price
        product.stock = data.stock
        product.badge = data.badge
        product.description = data.description
        product.specs = data.specs
        product.images = list(data.images)
        product.full_specs = [spec.model_dump() for spec in data.full_specs]

    def admin_create(self, db: Session, data: ProductWrite) -> Product:
        """Create a product."""
        self._check_images(db, data.images)

        product = Product(rating=0.0, review_count=0)
        self._apply(product, data)
        db.add(product)
        db.commit()
        db.refresh(product)

        product_mutations_counter.add(1, {"operation": "create", "category": product.category})
        logger.info("Product created", extra={
            "product_id": product.id,
            "product_name": product.name,
            "category": product.category
        })
        return product

    def admin_update(self, db: Session, product_id: str, data: ProductWrite) -> Product:
        """
        Replace a product's editable fields.

        Omitted optional fields are cleared rather than merged.

        Raises:
            NotFoundError: If the product does not exist
        """
        product = self.get_product(db, product_id)
        self._check_images(db, data.images)

        self._apply(product, data)
        db.commit()
        db.refresh(product)

        product_mutations_counter.add(1, {"operation": "update", "category": product.category})
        logger.info("Product updated", extra={"product_id": product.id})
        return product

    def soft_delete(self, db: Session, product_id: str) -> Product:
        """
        Hide a product from customers without removing it.

        Raises:
            NotFoundError: If the product does not exist
        """
        product = self.get_product(db, product_id)
        if product.deleted_at is None:
            product.deleted_at = utcnow()
            db.commit()
            db.refresh(product)
            product_mutations_counter.add(1, {"operation": "delete", "category": product.category})
            logger.info("Product soft-deleted", extra={"product_id": product.id})
        return product
