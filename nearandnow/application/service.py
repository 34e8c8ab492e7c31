import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from nearandnow.domain.models import (
    CustomerOrder, StoreOrder, OrderItem, OrderStatusHistory,
    OrderStatus, PaymentStatus, PaymentMethod, STATUS_TRANSITIONS,
)
from nearandnow.infrastructure.geocoding import Geocoder, Coordinates
from shared.core import get_logger
from .schemas import OrderCreate, OrderStatusUpdate, OrderSummaryRead, OrderItemRead, CartItem
from .locator import StoreLocator
from .availability import AvailabilityIndex
from .allocation import allocate
from .order_number import OrderNumberGenerator
from .errors import (
    OrderPlacementError, ValidationError, AddressResolutionError, NoStoresAvailableError,
    ItemsUnavailableError, ProductNotAvailableError, PersistenceError, InvalidStatusTransition,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")

def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

def apportion_delivery_fee(total, parts: int) -> list[Decimal]:
    """Split a delivery fee into ``parts`` equal cent amounts summing exactly to the total.

    Leftover cents from an uneven split go to the first shares.
    """
    if parts < 1:
        return []
    cents = int(money(total) / CENT)
    base, remainder = divmod(cents, parts)
    return [(Decimal(base + (1 if i < remainder else 0)) * CENT) for i in range(parts)]

def normalize_payment_method(label: Optional[str]) -> str:
    """Map a client payment label onto the stored payment method enum."""
    value = (label or "").strip().lower()
    if "cash" in value or value == "cod":
        return PaymentMethod.CASH_ON_DELIVERY.value
    normalized = value.replace(" ", "_").replace("-", "_")
    if normalized in {m.value for m in PaymentMethod}:
        return normalized
    return PaymentMethod.UPI.value

class OrderService:
    def __init__(self, db: Session,
                 geocoder: Optional[Geocoder] = None,
                 locator: Optional[StoreLocator] = None,
                 availability: Optional[AvailabilityIndex] = None,
                 order_numbers: Optional[OrderNumberGenerator] = None):
        self.db = db
        self.geocoder = geocoder or Geocoder()
        self.locator = locator or StoreLocator(db)
        self.availability = availability or AvailabilityIndex(db)
        self.order_numbers = order_numbers or OrderNumberGenerator(db)

    def _base_query(self):
        return select(CustomerOrder).options(
            selectinload(CustomerOrder.store_orders).selectinload(StoreOrder.items),
            selectinload(CustomerOrder.status_history),
        ).execution_options(populate_existing=True)

    def get(self, order_id: int) -> Optional[CustomerOrder]:
        return self.db.execute(self._base_query().where(CustomerOrder.id == order_id)).scalar_one_or_none()

    def list_orders(self, customer_id: Optional[int] = None) -> List[CustomerOrder]:
        stmt = self._base_query().order_by(CustomerOrder.placed_at.desc(), CustomerOrder.id.desc())
        if customer_id is not None:
            stmt = stmt.where(CustomerOrder.customer_id == customer_id)
        return list(self.db.execute(stmt).scalars())

    def list_summaries(self, customer_id: int) -> List[OrderSummaryRead]:
        """Order history for one customer, newest first."""
        summaries = []
        for order in self.list_orders(customer_id):
            items = [
                OrderItemRead.model_validate(item)
                for store_order in order.store_orders
                for item in store_order.items
            ]
            summaries.append(OrderSummaryRead(
                id=order.id,
                order_code=order.order_code,
                customer_id=order.customer_id,
                status=order.status,
                payment_status=order.payment_status,
                payment_method=order.payment_method,
                subtotal_amount=float(order.subtotal_amount),
                delivery_fee=float(order.delivery_fee),
                total_amount=float(order.total_amount),
                delivery_address=order.delivery_address,
                placed_at=order.placed_at,
                items=items,
                items_count=len(items),
            ))
        return summaries

    # Placement

    def _validate(self, data: OrderCreate) -> tuple[Decimal, Decimal, Decimal, Decimal]:
        if data.customer_id is None:
            raise ValidationError("User ID is required to place an order", step="validate")
        if not data.items:
            raise ValidationError("Cart is empty", step="validate")
        if all(item.catalog_id is None for item in data.items):
            raise ValidationError("No valid products in order", step="validate")
        for item in data.items:
            if item.catalog_id is None:
                raise ValidationError(f'Product "{item.name}" has no product id', step="validate")
            if item.quantity < 1:
                raise ValidationError(f'Quantity for "{item.name}" must be at least 1', step="validate")
            if not math.isfinite(item.price):
                raise ValidationError(f'Price for "{item.name}" must be a finite number', step="validate")
            if item.price < 0:
                raise ValidationError(f'Price for "{item.name}" cannot be negative', step="validate")
        if data.payment_status not in {s.value for s in PaymentStatus}:
            raise ValidationError(f"Unknown payment status '{data.payment_status}'", step="validate")
        if not data.shipping_address.full_address():
            raise ValidationError("Delivery address is required", step="validate")

        amounts = (data.subtotal, data.delivery_fee, data.discount, data.order_total)
        if not all(math.isfinite(amount) for amount in amounts):
            raise ValidationError("Order amounts must be finite numbers", step="validate")

        subtotal = sum((money(i.price) * i.quantity for i in data.items), Decimal("0.00"))
        delivery_fee = money(data.delivery_fee)
        discount = money(data.discount)
        if delivery_fee < 0 or discount < 0:
            raise ValidationError("Delivery fee and discount cannot be negative", step="validate")
        if abs(money(data.subtotal) - subtotal) > CENT:
            raise ValidationError(
                f"Subtotal {money(data.subtotal)} does not match cart total {subtotal}", step="validate"
            )
        total = subtotal + delivery_fee - discount
        if abs(money(data.order_total) - total) > CENT:
            raise ValidationError(
                f"Order total {money(data.order_total)} does not equal subtotal + delivery fee - discount ({total})",
                step="validate",
            )
        return subtotal, delivery_fee, discount, total

    def _resolve_coordinates(self, data: OrderCreate, full_address: str) -> Coordinates:
        lat = data.shipping_address.latitude
        lng = data.shipping_address.longitude
        if lat is not None and lng is not None and not (math.isnan(lat) or math.isnan(lng)):
            return Coordinates(lat=lat, lng=lng)
        coords = self.geocoder.geocode(full_address)
        if coords is None:
            raise AddressResolutionError(
                "Could not verify delivery address. Please use the map to pick your location or try a different address.",
                step="resolve_address",
            )
        return coords

    def place_order(self, data: OrderCreate) -> CustomerOrder:
        """Allocate the cart across nearby stores and persist the full order graph.

        Nothing is written unless every line can be sourced. The customer
        order, its store orders, line items and first history row are written
        in one transaction and rolled back together on any failure.
        """
        subtotal, delivery_fee, discount, total = self._validate(data)
        full_address = data.shipping_address.full_address()
        context = {'customer_id': data.customer_id, 'items': len(data.items)}

        coords = self._resolve_coordinates(data, full_address)
        order_code = self.order_numbers.next_order_code()
        context['order_code'] = order_code

        store_ids = self.locator.find_stores_within(coords.lat, coords.lng)
        if not store_ids:
            logger.warning("No stores near delivery address", extra={'extra_fields': context})
            raise NoStoresAvailableError(
                "No store available for your delivery address. Please contact support.",
                step="locate_stores",
            )

        product_ids = {item.catalog_id for item in data.items}
        try:
            availability = self.availability.find_availability(store_ids, product_ids)
        except SQLAlchemyError as e:
            logger.error(
                f"Availability lookup failed: {e}",
                extra={'extra_fields': {**context, 'step': 'resolve_availability', 'store_ids': store_ids}}
            )
            raise PersistenceError(
                f"Failed to check product availability for order {order_code}", step="resolve_availability"
            ) from e
        allocation = allocate(data.items, availability, store_ids, key=lambda item: item.catalog_id)
        if allocation.unassigned:
            names = [item.name for item in allocation.unassigned]
            logger.warning(
                "Items unavailable from nearby stores",
                extra={'extra_fields': {**context, 'unavailable_items': names}}
            )
            raise ItemsUnavailableError(
                f"Product(s) not available from any store near you: {', '.join(names)}",
                step="allocate",
                unavailable_items=names,
            )

        fee_shares = apportion_delivery_fee(delivery_fee, len(allocation.assignments))
        step = "insert_customer_order"
        try:
            order = CustomerOrder(
                customer_id=data.customer_id,
                order_code=order_code,
                status=OrderStatus.PENDING_AT_STORE.value,
                payment_status=data.payment_status,
                payment_method=normalize_payment_method(data.payment_method),
                subtotal_amount=subtotal,
                delivery_fee=delivery_fee,
                discount_amount=discount,
                total_amount=total,
                delivery_address=full_address,
                delivery_latitude=coords.lat,
                delivery_longitude=coords.lng,
            )
            self.db.add(order)
            self.db.flush()  # assign id

            for (store_id, items), fee_share in zip(allocation.assignments.items(), fee_shares):
                step = f"insert_store_order:{store_id}"
                self._insert_store_order(order, store_id, items, fee_share)

            step = "insert_status_history"
            self.db.add(OrderStatusHistory(
                customer_order_id=order.id,
                status=OrderStatus.PENDING_AT_STORE.value,
                notes="Order placed",
            ))
            self.db.commit()
        except OrderPlacementError as e:
            self.db.rollback()
            logger.error(
                f"Order placement rolled back at {step}: {e.message}",
                extra={'extra_fields': {**context, 'step': step}}
            )
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Order placement rolled back at {step}",
                exc_info=True,
                extra={'extra_fields': {**context, 'step': step}}
            )
            raise PersistenceError(f"Failed to save order {order_code}", step=step) from e

        logger.info(
            f"Order {order_code} placed across {len(allocation.assignments)} store(s)",
            extra={'extra_fields': {**context, 'store_ids': allocation.store_ids, 'order_id': order.id}}
        )
        return self.get(order.id)

    def _insert_store_order(self, order: CustomerOrder, store_id: int, items: List[CartItem], fee_share: Decimal):
        store_order = StoreOrder(
            customer_order_id=order.id,
            store_id=store_id,
            subtotal_amount=sum((money(i.price) * i.quantity for i in items), Decimal("0.00")),
            delivery_fee=fee_share,
            status=OrderStatus.PENDING_AT_STORE.value,
        )
        self.db.add(store_order)
        self.db.flush()

        # Re-check inventory at write time; a row may have been deactivated since allocation
        records = self.availability.inventory_records_for_store(store_id, [i.catalog_id for i in items])
        for item in items:
            inventory_id = records.get(item.catalog_id)
            if inventory_id is None:
                raise ProductNotAvailableError(
                    f'Product "{item.name}" is not available from the store.',
                    step=f"insert_order_items:{store_id}",
                    unavailable_items=[item.name],
                )
            self.db.add(OrderItem(
                store_order_id=store_order.id,
                product_id=inventory_id,
                product_name=item.name,
                unit=item.unit,
                image_url=item.image,
                unit_price=money(item.price),
                quantity=item.quantity,
            ))
        self.db.flush()

    # Status lifecycle

    def update_status(self, order_id: int, data: OrderStatusUpdate) -> Optional[CustomerOrder]:
        order = self.get(order_id)
        if not order:
            return None

        current = OrderStatus(order.status)
        target = OrderStatus(data.status)
        if target not in STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Cannot move order {order.order_code} from {current.value} to {target.value}",
                step="update_status",
            )

        order.status = target.value
        for store_order in order.store_orders:
            store_order.status = target.value
        self.db.add(OrderStatusHistory(customer_order_id=order.id, status=target.value, notes=data.notes))
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update status of order {order.order_code}", step="update_status") from e

        logger.info(
            f"Order {order.order_code} moved {current.value} -> {target.value}",
            extra={'extra_fields': {'order_id': order.id}}
        )
        return self.get(order_id)
