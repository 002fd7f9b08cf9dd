from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from chefwell.core.cache import CacheLayer, cache_key, cache_pattern
from chefwell.core.errors import ValidationError
from chefwell.core.serialization_helpers import serialize_model
from chefwell.core.tenant_pool import TenantHandle
from chefwell.models.catalog import Category, Product


PRODUCT_FIELDS = (
    "id", "name", "display_name", "category_id", "description", "price", "cost",
    "image_url", "is_available", "sku", "prep_time", "stock", "priority", "created_at",
)


def serialize_product(product: Product) -> Dict[str, Any]:
    data = serialize_model(product, PRODUCT_FIELDS)
    data["category"] = product.category.name if product.category else None
    return data


def _get_or_create_category(db, name: str) -> Category:
    category = db.execute(
        select(Category).where(Category.name == name).limit(1)
    ).scalar_one_or_none()
    if category is None:
        category = Category(name=name)
        db.add(category)
        db.flush()
    return category


def list_products(handle: TenantHandle, cache: Optional[CacheLayer]) -> List[Dict[str, Any]]:
    def _load() -> List[Dict[str, Any]]:
        with handle.transaction() as db:
            products = db.execute(
                select(Product)
                .options(selectinload(Product.category))
                .order_by(Product.priority.desc(), Product.name)
            ).scalars().all()
            return [serialize_product(p) for p in products]

    if cache is None:
        return _load()
    return cache.get_or_set(cache_key(handle.namespace, "products", "list"), _load)


def create_product(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    name: str,
    price: Decimal,
    category: str,
    display_name: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    if not name or not category:
        raise ValidationError("Product name and category are required")
    if price is None or Decimal(price) < 0:
        raise ValidationError("Product price cannot be negative")

    with handle.transaction() as db:
        product = Product(
            name=name,
            display_name=display_name or name,
            price=Decimal(price),
            category=_get_or_create_category(db, category),
            **extra,
        )
        db.add(product)
        db.flush()
        data = serialize_product(product)

    if cache is not None:
        cache.invalidate(cache_pattern(handle.namespace, "products"))
    return data
