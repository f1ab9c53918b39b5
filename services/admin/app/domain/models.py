"""Rows of the hosted backend's tables, as the panel reads them."""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def to_number(value: Any) -> float:
    """Numeric coercion for stored values: missing or non-numeric becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


class Order(BaseModel):
    id: str
    order_number: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    # Stored as free text; only the form restricts it to OrderStatus
    status: Optional[str] = None
    fabric_price: Optional[float] = None
    tailoring_price: Optional[float] = None
    extra_costs: Optional[float] = None
    tax_amount: Optional[float] = None
    total_price: Optional[float] = None
    total_pieces: Optional[int] = None
    notes: Optional[str] = None
    images: Optional[list[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderItem(BaseModel):
    id: str
    order_id: Optional[str] = None
    product_id: Optional[str] = None
    product_name: str
    model: Optional[str] = None
    size: Optional[str] = None
    quantity: Optional[int] = None
    meters: Optional[float] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None
    created_at: Optional[datetime] = None


class Product(BaseModel):
    id: str
    name: str
    model: str
    description: Optional[str] = None
    price: Optional[float] = None
    fabric_price: Optional[float] = None
    tailoring_price: Optional[float] = None
    sizes: Optional[list[str]] = None
    images: Optional[list[str]] = None
    is_active: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Customer(BaseModel):
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class Profile(BaseModel):
    id: str
    user_id: str
    full_name: Optional[str] = None
    role: Optional[str] = None
