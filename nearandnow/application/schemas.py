from pydantic import BaseModel
from datetime import datetime
from typing import Optional

from nearandnow.domain.models import OrderStatus

class ShippingAddress(BaseModel):
    address: str
    city: str = ""
    state: str = ""
    pincode: str = ""
    # Known coordinates (saved address or map picker) skip geocoding
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def full_address(self) -> str:
        parts = [self.address, self.city, self.state, self.pincode]
        return ", ".join(p.strip() for p in parts if p and p.strip())

class CartItem(BaseModel):
    # Catalog (master) product id; older clients send it as "id"
    product_id: Optional[int] = None
    id: Optional[int] = None
    name: str
    price: float
    quantity: int
    unit: Optional[str] = None
    image: Optional[str] = None

    @property
    def catalog_id(self) -> Optional[int]:
        return self.product_id if self.product_id is not None else self.id

class OrderCreate(BaseModel):
    customer_id: Optional[int] = None
    items: list[CartItem]
    shipping_address: ShippingAddress
    payment_method: str = "cash_on_delivery"
    payment_status: str = "pending"
    subtotal: float
    delivery_fee: float = 0
    discount: float = 0
    order_total: float

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None

class OrderItemRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    unit: Optional[str] = None
    image_url: Optional[str] = None
    unit_price: float
    quantity: int
    class Config:
        from_attributes = True

class StoreOrderRead(BaseModel):
    id: int
    store_id: int
    subtotal_amount: float
    delivery_fee: float
    status: str
    items: list[OrderItemRead]
    class Config:
        from_attributes = True

class StatusHistoryRead(BaseModel):
    status: str
    notes: Optional[str] = None
    created_at: datetime
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: int
    order_code: str
    customer_id: int
    status: str
    payment_status: str
    payment_method: str
    subtotal_amount: float
    delivery_fee: float
    discount_amount: float
    total_amount: float
    delivery_address: str
    delivery_latitude: float
    delivery_longitude: float
    placed_at: datetime
    store_orders: list[StoreOrderRead]
    status_history: list[StatusHistoryRead] = []
    class Config:
        from_attributes = True

class OrderSummaryRead(BaseModel):
    """Customer-facing order history row with line items flattened across stores."""
    id: int
    order_code: str
    customer_id: int
    status: str
    payment_status: str
    payment_method: str
    subtotal_amount: float
    delivery_fee: float
    total_amount: float
    delivery_address: str
    placed_at: datetime
    items: list[OrderItemRead]
    items_count: int
