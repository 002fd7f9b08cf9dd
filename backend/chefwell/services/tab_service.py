"""
Tab lifecycle: open a tab, attach orders, mark them delivered, close it into a Sale.

A tab is OPEN until it is closed exactly once; CLOSED is terminal. Money is
handled as Decimal quantized to cents, so closing the same tab data always
produces the same figures.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from chefwell.core.cache import CacheLayer, cache_key, cache_pattern
from chefwell.core.errors import InvalidStateError, NotFoundError, StorageError, ValidationError
from chefwell.core.serialization_helpers import (
    serialize_datetime,
    serialize_decimal,
    serialize_exact,
    serialize_model,
)
from chefwell.core.tenant_pool import TenantHandle
from chefwell.models.catalog import Product
from chefwell.models.payment import Payment
from chefwell.models.sale import Sale
from chefwell.models.tab import DeliveryType, Order, OrderItem, OrderStatus, Tab, TabStatus


logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
# Largest values the sales columns hold: Numeric(5, 2) rates, Numeric(10, 2) amounts
MAX_RATE = Decimal("999.99")
MAX_AMOUNT = Decimal("99999999.99")
# Attempts when a concurrent writer took the order/sale number first
NUMBER_RETRIES = 3

TAB_FIELDS = (
    "id", "table_number", "delivery_type", "customer_name", "customer_phone",
    "status", "total", "discount", "payment_method", "created_at", "closed_at",
)
SALE_FIELDS = (
    "id", "sale_number", "tab_id", "table_number", "delivery_type", "customer_name",
    "customer_phone", "subtotal", "discount_rate", "discount_amount", "tip_rate",
    "tip_amount", "tax_rate", "tax_amount", "total", "amount_paid", "change_amount",
    "payment_method", "items", "created_at", "closed_at",
)


def money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, field: str, default: Optional[Decimal] = None) -> Decimal:
    """
    Coerce caller input to a finite Decimal.

    Raises:
        ValidationError: value missing (and no default) or not numeric
    """
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be numeric")
    if not number.is_finite():
        raise ValidationError(f"{field} must be numeric")
    return number


def to_quantity(value: Any) -> int:
    number = to_decimal(value, "quantity")
    if number != number.to_integral_value() or number < 1:
        raise ValidationError("quantity must be a positive integer")
    return int(number)


def _rate(value: Any, field: str, maximum: Decimal = MAX_RATE) -> Decimal:
    """
    Non-negative figure rounded to cents, the scale it is stored at, so a Sale
    recomputes its own amounts from its stored rates.
    """
    raw = to_decimal(value, field, default=Decimal("0"))
    if raw < 0:
        raise ValidationError(f"{field} cannot be negative")
    rate = money(raw)
    if rate > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return rate


def _delivery_type(value: Optional[str]) -> str:
    if not value:
        return DeliveryType.dine_in.value
    try:
        return DeliveryType(value).value
    except ValueError:
        raise ValidationError(f"Unknown delivery type: {value}")


@dataclass(frozen=True)
class CloseTotals:
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    tip_rate: Decimal
    tip_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    change_amount: Decimal


def calculate_close_totals(
    subtotal: Decimal,
    discount_rate: Decimal = Decimal("0"),
    tip_rate: Decimal = Decimal("0"),
    tax_rate: Decimal = Decimal("0"),
    amount_paid: Decimal = Decimal("0"),
) -> CloseTotals:
    """
    Derive the closing figures of a tab.

    Discount, tip and tax are percentages of the subtotal, each rounded to
    cents before the total is summed, so total == subtotal - discount + tip + tax
    holds exactly on the stored values.

    Returns:
        CloseTotals with every amount quantized to cents
    """
    subtotal = money(Decimal(subtotal))
    discount_amount = money(subtotal * discount_rate / HUNDRED)
    tip_amount = money(subtotal * tip_rate / HUNDRED)
    tax_amount = money(subtotal * tax_rate / HUNDRED)
    total = subtotal - discount_amount + tip_amount + tax_amount
    amount_paid = money(amount_paid)
    if amount_paid > 0:
        change_amount = max(amount_paid - total, Decimal("0.00"))
    else:
        change_amount = Decimal("0.00")
    return CloseTotals(
        subtotal=subtotal,
        discount_rate=discount_rate,
        discount_amount=discount_amount,
        tip_rate=tip_rate,
        tip_amount=tip_amount,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        total=total,
        amount_paid=amount_paid,
        change_amount=money(change_amount),
    )


def serialize_order(order: Order, exact: bool = False) -> Dict[str, Any]:
    amount = serialize_exact if exact else serialize_decimal
    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "notes": order.notes,
        "created_at": serialize_datetime(order.created_at),
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": amount(item.unit_price),
                "total_price": amount(item.total_price),
                "notes": item.notes,
            }
            for item in order.items
        ],
    }


def serialize_tab(tab: Tab) -> Dict[str, Any]:
    data = serialize_model(tab, TAB_FIELDS)
    data["orders"] = [serialize_order(order) for order in tab.orders]
    return data


def serialize_sale(sale: Sale) -> Dict[str, Any]:
    return serialize_model(sale, SALE_FIELDS)


def _invalidate_tabs(cache: Optional[CacheLayer], namespace: str, *resources: str) -> None:
    if cache is None:
        return
    for resource in ("tabs",) + resources:
        cache.invalidate(cache_pattern(namespace, resource))


def _load_tab(db: Session, tab_id: int, for_update: bool = False) -> Optional[Tab]:
    stmt = (
        select(Tab)
        .where(Tab.id == tab_id)
        .options(selectinload(Tab.orders).selectinload(Order.items))
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def _next_number(db: Session, column) -> int:
    return db.execute(select(func.coalesce(func.max(column), 0) + 1)).scalar_one()


def _number_taken(exc: StorageError, column: str) -> bool:
    cause = exc.__cause__
    return isinstance(cause, IntegrityError) and column in str(cause.orig)


def _numbered_write(handle: TenantHandle, column: str, write):
    """
    Run ``write`` in its own transaction, again when the unique ``column``
    rejected the number it picked.
    """
    for attempt in range(1, NUMBER_RETRIES + 1):
        try:
            return write()
        except StorageError as exc:
            if attempt == NUMBER_RETRIES or not _number_taken(exc, column):
                raise
            logger.warning(
                "%s collision in %s (attempt %d/%d), retrying",
                column, handle.namespace, attempt, NUMBER_RETRIES,
            )


def find_or_create(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    table_number: Optional[str] = None,
    delivery_type: Optional[str] = None,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
) -> Tuple[Tab, bool]:
    """
    Return the OPEN tab for a table (dine-in) or a phone number (delivery),
    creating one when none matches. Other delivery types always get a new tab.

    Returns:
        (tab, created)
    """
    delivery_type = _delivery_type(delivery_type)
    table_number = (str(table_number).strip() or None) if table_number is not None else None
    customer_phone = (customer_phone or "").strip() or None

    with handle.transaction() as db:
        match = None
        base = select(Tab).where(Tab.status == TabStatus.open.value, Tab.delivery_type == delivery_type)
        if delivery_type == DeliveryType.dine_in.value and table_number:
            match = base.where(Tab.table_number == table_number)
        elif delivery_type == DeliveryType.delivery.value and customer_phone:
            match = base.where(Tab.customer_phone == customer_phone)

        if match is not None:
            existing = db.execute(
                match.order_by(Tab.created_at).limit(1).options(
                    selectinload(Tab.orders).selectinload(Order.items)
                )
            ).scalar_one_or_none()
            if existing is not None:
                return existing, False

        tab = Tab(
            table_number=table_number,
            delivery_type=delivery_type,
            customer_name=customer_name or None,
            customer_phone=customer_phone,
            status=TabStatus.open.value,
            total=Decimal("0"),
            discount=Decimal("0"),
        )
        db.add(tab)
        db.flush()
        tab.orders = []

    _invalidate_tabs(cache, handle.namespace)
    logger.info("Tab %s opened in %s (%s)", tab.id, handle.namespace, delivery_type)
    return tab, True


def _prepare_items(db: Session, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    prepared = []
    products: Dict[int, Optional[Product]] = {}
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("order items must be objects")
        product_id = raw.get("product_id")
        product_name = raw.get("product_name")
        unit_price = raw.get("unit_price")

        # Missing snapshot fields are taken from the catalog as it is right now
        if product_id is not None and (not product_name or unit_price is None):
            if product_id not in products:
                products[product_id] = db.get(Product, product_id)
            product = products[product_id]
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            product_name = product_name or product.display_name or product.name
            unit_price = product.price if unit_price is None else unit_price

        if not product_name:
            raise ValidationError("product_name is required")
        unit = money(to_decimal(unit_price, "unit_price"))
        if unit < 0:
            raise ValidationError("unit_price cannot be negative")
        quantity = to_quantity(raw.get("quantity", 1))
        prepared.append({
            "product_id": product_id,
            "product_name": str(product_name),
            "quantity": quantity,
            "unit_price": unit,
            "total_price": money(unit * quantity),
            "notes": raw.get("notes") or None,
        })
    return prepared


def add_order(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    tab_id: int,
    items: List[Dict[str, Any]],
    notes: Optional[str] = None,
) -> Order:
    """
    Attach an order to an OPEN tab and grow its running total.

    Items and the total increment are written in one transaction; the
    increment is a column-level ``total = total + x`` so concurrent orders on
    the same tab cannot lose updates.

    Raises:
        ValidationError: empty or malformed items (nothing is written)
        NotFoundError: tab missing, or InvalidStateError when not OPEN
    """
    if not items:
        raise ValidationError("An order needs at least one item")

    def write() -> Tuple[Order, Decimal]:
        with handle.transaction() as db:
            tab = db.get(Tab, tab_id)
            if tab is None:
                raise NotFoundError(f"Tab {tab_id} not found")
            if tab.status != TabStatus.open.value:
                raise InvalidStateError(f"Tab {tab_id} is not open")

            prepared = _prepare_items(db, items)
            order_total = sum((item["total_price"] for item in prepared), Decimal("0"))

            order = Order(
                tab_id=tab_id,
                order_number=_next_number(db, Order.order_number),
                status=OrderStatus.pending.value,
                notes=notes or None,
            )
            order.items = [OrderItem(**item) for item in prepared]
            db.add(order)
            db.flush()

            result = db.execute(
                update(Tab)
                .where(Tab.id == tab_id, Tab.status == TabStatus.open.value)
                .values(total=Tab.total + order_total)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError(f"Tab {tab_id} is not open")
        return order, order_total

    order, order_total = _numbered_write(handle, "order_number", write)
    _invalidate_tabs(cache, handle.namespace)
    logger.info(
        "Order %s added to tab %s in %s (+%s)", order.id, tab_id, handle.namespace, order_total
    )
    return order


def mark_delivered(handle: TenantHandle, cache: Optional[CacheLayer], order_id: int) -> Order:
    """Idempotent: an already delivered order is returned untouched."""
    with handle.transaction() as db:
        order = db.get(Order, order_id, options=[selectinload(Order.items)])
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status == OrderStatus.delivered.value:
            return order
        order.status = OrderStatus.delivered.value
        order.updated_at = datetime.utcnow()

    _invalidate_tabs(cache, handle.namespace)
    return order


def close(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    tab_id: int,
    payment_method: Optional[str],
    discount_rate: Any = None,
    tip_rate: Any = None,
    tax_rate: Any = None,
    amount_paid: Any = None,
) -> Sale:
    """
    Close an OPEN tab into exactly one Sale.

    The snapshot read, the sale insert and the tab transition share one
    transaction. The tab row is locked, the transition is conditional on the
    tab still being OPEN and ``sales.tab_id`` is unique, so a retried or
    concurrent close can never produce a second sale.

    Raises:
        ValidationError: payment method missing or rates not numeric
        NotFoundError: tab missing
        InvalidStateError: tab already closed
        StorageError: storage failure, or a sale number still taken after retries
    """
    if not payment_method or not str(payment_method).strip():
        raise ValidationError("Payment method is required")
    payment_method = str(payment_method).strip()
    discount = _rate(discount_rate, "discount_rate", maximum=HUNDRED)
    tip = _rate(tip_rate, "tip_rate")
    tax = _rate(tax_rate, "tax_rate")
    paid = _rate(amount_paid, "amount_paid", maximum=MAX_AMOUNT)

    def write() -> Tuple[Sale, CloseTotals]:
        with handle.transaction() as db:
            tab = _load_tab(db, tab_id, for_update=True)
            if tab is None:
                raise NotFoundError(f"Tab {tab_id} not found")
            if tab.status != TabStatus.open.value:
                raise InvalidStateError(f"Tab {tab_id} is already closed")

            totals = calculate_close_totals(Decimal(tab.total or 0), discount, tip, tax, paid)
            snapshot = [serialize_order(order, exact=True) for order in tab.orders]
            closed_at = datetime.utcnow()

            sale = Sale(
                sale_number=_next_number(db, Sale.sale_number),
                tab_id=tab.id,
                table_number=tab.table_number,
                delivery_type=tab.delivery_type,
                customer_name=tab.customer_name,
                customer_phone=tab.customer_phone,
                subtotal=totals.subtotal,
                discount_rate=totals.discount_rate,
                discount_amount=totals.discount_amount,
                tip_rate=totals.tip_rate,
                tip_amount=totals.tip_amount,
                tax_rate=totals.tax_rate,
                tax_amount=totals.tax_amount,
                total=totals.total,
                amount_paid=totals.amount_paid,
                change_amount=totals.change_amount,
                payment_method=payment_method,
                items=snapshot,
                created_at=tab.created_at,
                closed_at=closed_at,
            )
            db.add(sale)
            try:
                db.flush()
            except IntegrityError as exc:
                if "tab_id" not in str(exc.orig):
                    raise
                raise InvalidStateError(f"Tab {tab_id} already has a sale") from exc

            db.add(Payment(sale_id=sale.id, method=payment_method, amount=totals.total))

            result = db.execute(
                update(Tab)
                .where(Tab.id == tab.id, Tab.status == TabStatus.open.value)
                .values(
                    status=TabStatus.closed.value,
                    closed_at=closed_at,
                    payment_method=payment_method,
                    discount=totals.discount_amount,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStateError(f"Tab {tab_id} is already closed")
        return sale, totals

    sale, totals = _numbered_write(handle, "sale_number", write)
    _invalidate_tabs(cache, handle.namespace, "sales")
    logger.info(
        "Tab %s closed in %s: sale %s total=%s method=%s",
        tab_id, handle.namespace, sale.id, totals.total, payment_method,
    )
    return sale


def get_tab(handle: TenantHandle, tab_id: int) -> Dict[str, Any]:
    with handle.transaction() as db:
        tab = _load_tab(db, tab_id)
        if tab is None:
            raise NotFoundError(f"Tab {tab_id} not found")
        return serialize_tab(tab)


def list_open(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    delivery_type: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Open tabs, newest first, with their orders. Read-through cached."""
    if delivery_type:
        delivery_type = _delivery_type(delivery_type)
    key = cache_key(handle.namespace, "tabs", f"open:{delivery_type}" if delivery_type else "open")

    def _load() -> List[Dict[str, Any]]:
        with handle.transaction() as db:
            stmt = (
                select(Tab)
                .where(Tab.status == TabStatus.open.value)
                .options(selectinload(Tab.orders).selectinload(Order.items))
                .order_by(Tab.created_at.desc(), Tab.id.desc())
            )
            if delivery_type:
                stmt = stmt.where(Tab.delivery_type == delivery_type)
            return [serialize_tab(tab) for tab in db.execute(stmt).scalars().all()]

    if cache is None:
        return _load()
    return cache.get_or_set(key, _load)


def list_sales(
    handle: TenantHandle,
    cache: Optional[CacheLayer],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    key = cache_key(
        handle.namespace,
        "sales",
        f"list:{serialize_datetime(start) or '-'}:{serialize_datetime(end) or '-'}",
    )

    def _load() -> List[Dict[str, Any]]:
        with handle.transaction() as db:
            stmt = select(Sale).order_by(Sale.closed_at.desc(), Sale.id.desc())
            if start is not None:
                stmt = stmt.where(Sale.closed_at >= start)
            if end is not None:
                stmt = stmt.where(Sale.closed_at <= end)
            return [serialize_sale(sale) for sale in db.execute(stmt).scalars().all()]

    if cache is None:
        return _load()
    return cache.get_or_set(key, _load)
