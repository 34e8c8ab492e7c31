from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from nearandnow.infrastructure.db import get_db
from nearandnow.application.service import OrderService
from nearandnow.application.schemas import OrderCreate, OrderRead, OrderStatusUpdate, OrderSummaryRead

router = APIRouter(prefix="/orders", tags=["orders"])

@router.get("/", response_model=list[OrderSummaryRead])
def list_orders(
    customer_id: int = Query(..., description="Customer whose order history to return"),
    db: Session = Depends(get_db),
):
    """Order history for a customer, newest first."""
    return OrderService(db).list_summaries(customer_id)

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: int, db: Session = Depends(get_db)):
    """Get a specific order with its per-store sub-orders."""
    order = OrderService(db).get(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order

@router.post("/", response_model=OrderRead, status_code=201)
def place_order(payload: OrderCreate, db: Session = Depends(get_db)):
    """Split the cart across nearby stores and create the order."""
    return OrderService(db).place_order(payload)

@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(order_id: int, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    order = OrderService(db).update_status(order_id, payload)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order
