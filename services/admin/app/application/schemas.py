from pydantic import BaseModel, Field, ValidationError
from typing import Optional

from app.domain.models import Order, OrderItem, OrderStatus

MAX_QUANTITY = 100_000
MAX_AMOUNT = 1_000_000_000


class OrderItemForm(BaseModel):
    id: Optional[str] = None
    product_name: str = Field(min_length=1)
    model: Optional[str] = None
    size: Optional[str] = None
    quantity: int = Field(ge=1, le=MAX_QUANTITY)
    meters: Optional[float] = Field(default=None, ge=0, le=MAX_AMOUNT, allow_inf_nan=False)
    unit_price: float = Field(ge=0, le=MAX_AMOUNT, allow_inf_nan=False)


class OrderForm(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_phone: str = Field(min_length=1)
    status: OrderStatus = OrderStatus.PENDING
    fabric_price: float = Field(default=0, ge=0, le=MAX_AMOUNT, allow_inf_nan=False)
    tailoring_price: float = Field(default=0, ge=0, le=MAX_AMOUNT, allow_inf_nan=False)
    extra_costs: float = Field(default=0, ge=0, le=MAX_AMOUNT, allow_inf_nan=False)
    tax_amount: float = Field(default=0, ge=0, le=MAX_AMOUNT, allow_inf_nan=False)
    notes: Optional[str] = None
    order_items: list[OrderItemForm] = Field(min_length=1)


class OrderTotals(BaseModel):
    items_total: float
    total_pieces: float
    total_price: float


class Notification(BaseModel):
    title: str
    description: str
    variant: str = "default"


class SignInRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SessionInfo(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    role: Optional[str] = None
    access_token: str


# Field-level messages shown next to the offending input
FIELD_MESSAGES = {
    "customer_name": "Customer name is required",
    "customer_phone": "Phone number is required",
    "status": "Status must be one of: pending, completed, cancelled",
    "order_items": "At least one product is required",
    "product_name": "Product name is required",
    "quantity": "Quantity is required",
    "unit_price": "Price is required",
}

# Out-of-range values keep pydantic's own wording
RANGE_ERRORS = {"less_than_equal", "int_parsing_size", "finite_number"}


def field_errors(exc: ValidationError) -> dict[str, str]:
    """Flatten a ValidationError into {"order_items.0.quantity": message}."""
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error["loc"]]
        path = ".".join(loc) or "__root__"
        field = loc[-1] if loc else ""
        if error["type"] in RANGE_ERRORS:
            message = error["msg"]
        else:
            message = FIELD_MESSAGES.get(field, error["msg"])
        errors.setdefault(path, message)
    return errors


class DashboardStats(BaseModel):
    total_orders: int = 0
    total_revenue: float = 0
    total_customers: int = 0
    pending_orders: int = 0
    completed_orders: int = 0


class OrderDetail(BaseModel):
    order: Order
    items: list[OrderItem]
