"""
Order editor.

Holds the editable state of one order (customer fields, surcharges and a
variable-length list of line items), derives the running totals, and
persists the whole aggregate.

Persisting is three sequential gateway writes with no transaction around
them: update the order header, delete every item row of the order, insert
the current items. A failure aborts the remaining writes and nothing that
already succeeded is undone, so an order can be left with its new header
and its old items, or with no items at all.
"""

import math
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from shared.core import get_logger

from app.domain.models import OrderStatus, to_number
from app.infrastructure.gateway import GatewayClient, GatewayError
from .schemas import OrderForm, OrderTotals, field_errors
from .service import OrderService

logger = get_logger(__name__)

SURCHARGE_FIELDS = ("fabric_price", "tailoring_price", "extra_costs", "tax_amount")

UPDATE_FAILED_MESSAGE = "An error occurred while updating the order. Please try again."
CREATE_FAILED_MESSAGE = "An error occurred while creating the order. Please try again."
LOAD_FAILED_MESSAGE = "An error occurred while loading the order."


class FormValidationError(Exception):
    """The form failed schema validation; nothing was sent to the gateway."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Order form is invalid")
        self.errors = errors


class SubmissionError(Exception):
    """A gateway write failed part-way through a submission."""

    def __init__(self, message: str, step: str):
        super().__init__(message)
        self.message = message
        self.step = step


class SubmissionInProgress(Exception):
    pass


class OrderLoadError(Exception):
    pass


def blank_item() -> Dict[str, Any]:
    return {
        "product_name": "",
        "model": "",
        "size": "",
        "quantity": 1,
        "meters": 0,
        "unit_price": 0,
    }


def _exact_sum(values: Iterable[float]) -> float:
    # fsum raises on intermediate overflow and on inf - inf
    try:
        return to_number(math.fsum(values))
    except (OverflowError, ValueError):
        return 0.0


def compute_totals(items: Iterable[Mapping[str, Any]], surcharges: Mapping[str, Any]) -> OrderTotals:
    """
    items_total = sum(quantity * unit_price)
    total_pieces = sum(quantity)
    total_price = items_total + fabric + tailoring + extra costs + tax

    Missing, non-numeric or out-of-range values count as 0. fsum keeps the
    result independent of item order.
    """
    items = list(items)
    items_total = _exact_sum(
        to_number(item.get("quantity")) * to_number(item.get("unit_price")) for item in items
    )
    total_pieces = _exact_sum(to_number(item.get("quantity")) for item in items)
    total_price = _exact_sum(
        [items_total] + [to_number(surcharges.get(name)) for name in SURCHARGE_FIELDS]
    )
    return OrderTotals(items_total=items_total, total_pieces=total_pieces, total_price=total_price)


class SubmissionGuard:
    """
    Rejects a second submission for an order while the first is in flight.

    Check-and-add happens between awaits on a single event loop, so a
    plain set is enough.
    """

    def __init__(self):
        self._in_flight: set = set()

    @contextmanager
    def hold(self, key: str):
        if key in self._in_flight:
            raise SubmissionInProgress(f"A submission for {key} is already in progress")
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


class OrderFormController:
    def __init__(self, gateway: GatewayClient, order_id: Optional[str] = None):
        self.gateway = gateway
        self.order_id = order_id
        self.values: Dict[str, Any] = {
            "customer_name": "",
            "customer_phone": "",
            "status": OrderStatus.PENDING.value,
            "fabric_price": 0,
            "tailoring_price": 0,
            "extra_costs": 0,
            "tax_amount": 0,
            "notes": "",
        }
        self.items: List[Dict[str, Any]] = []

    @classmethod
    def from_payload(
        cls, gateway: GatewayClient, payload: Mapping[str, Any], order_id: Optional[str] = None
    ) -> "OrderFormController":
        """Controller seeded with values posted by the editor."""
        controller = cls(gateway, order_id)
        controller.update(**{k: v for k, v in payload.items() if k in controller.values})
        items = payload.get("order_items")
        for item in items if isinstance(items, list) else []:
            controller.items.append(dict(item) if isinstance(item, Mapping) else {})
        return controller

    async def load(self) -> None:
        """Seed the form from the stored order and its items."""
        if not self.order_id:
            raise OrderLoadError("No order to load")
        service = OrderService(self.gateway)
        try:
            order = await service.get(self.order_id)
            items = await service.items(self.order_id)
        except (GatewayError, ValidationError) as e:
            logger.error(f"Error fetching order {self.order_id}: {e}")
            raise OrderLoadError(LOAD_FAILED_MESSAGE) from e

        self.values = {
            "customer_name": order.customer_name,
            "customer_phone": order.customer_phone,
            "status": order.status,
            "fabric_price": to_number(order.fabric_price),
            "tailoring_price": to_number(order.tailoring_price),
            "extra_costs": to_number(order.extra_costs),
            "tax_amount": to_number(order.tax_amount),
            "notes": order.notes or "",
        }
        self.items = [
            {
                "id": item.id,
                "product_name": item.product_name,
                "model": item.model or "",
                "size": item.size or "",
                "quantity": item.quantity,
                "meters": to_number(item.meters),
                "unit_price": to_number(item.unit_price),
            }
            for item in items
        ]

    def update(self, **fields: Any) -> None:
        unknown = set(fields) - set(self.values)
        if unknown:
            raise KeyError(f"Unknown order fields: {', '.join(sorted(unknown))}")
        self.values.update(fields)

    def update_item(self, index: int, **fields: Any) -> None:
        self.items[index].update(fields)

    def add_item(self) -> Dict[str, Any]:
        item = blank_item()
        self.items.append(item)
        return item

    def remove_item(self, index: int) -> None:
        if len(self.items) <= 1:
            raise ValueError("An order must keep at least one product")
        del self.items[index]

    def totals(self) -> OrderTotals:
        return compute_totals(self.items, self.values)

    def surcharges(self) -> Dict[str, Any]:
        return {name: self.values.get(name) for name in SURCHARGE_FIELDS}

    def snapshot(self) -> Dict[str, Any]:
        return {**self.values, "order_items": [dict(item) for item in self.items]}

    def validate(self) -> OrderForm:
        try:
            return OrderForm.model_validate(self.snapshot())
        except ValidationError as e:
            raise FormValidationError(field_errors(e)) from e

    def _header(self, form: OrderForm, totals: OrderTotals) -> Dict[str, Any]:
        return {
            "customer_name": form.customer_name,
            "customer_phone": form.customer_phone,
            "status": form.status.value,
            "total_pieces": int(totals.total_pieces),
            "total_price": totals.total_price,
            "fabric_price": form.fabric_price,
            "tailoring_price": form.tailoring_price,
            "extra_costs": form.extra_costs,
            "tax_amount": form.tax_amount,
            "notes": form.notes,
        }

    def _item_rows(self, form: OrderForm, order_id: str) -> List[Dict[str, Any]]:
        return [
            {
                "order_id": order_id,
                "product_name": item.product_name,
                "model": item.model,
                "size": item.size,
                "quantity": item.quantity,
                "meters": item.meters,
                "unit_price": item.unit_price,
                "total_price": item.quantity * item.unit_price,
            }
            for item in form.order_items
        ]

    async def submit(self) -> OrderTotals:
        """
        Persist an edited order: update header, delete items, insert items.

        Raises FormValidationError before any network call, SubmissionError
        when a write fails (earlier writes stay applied).
        """
        if not self.order_id:
            raise ValueError("submit() needs an order id; use create() for new orders")
        form = self.validate()
        totals = compute_totals([item.model_dump() for item in form.order_items], form.model_dump())

        step = "update_order"
        try:
            await self.gateway.update("orders", self._header(form, totals), filters={"id": self.order_id})
            step = "delete_items"
            await self.gateway.delete("order_items", filters={"order_id": self.order_id})
            step = "insert_items"
            await self.gateway.insert("order_items", self._item_rows(form, self.order_id), returning=False)
        except GatewayError as e:
            logger.error(
                f"Error updating order {self.order_id} at step {step}: {e}",
                extra={'extra_fields': {'order_id': self.order_id, 'step': step}},
            )
            raise SubmissionError(UPDATE_FAILED_MESSAGE, step) from e

        logger.info(
            f"Order {self.order_id} updated with {len(form.order_items)} items",
            extra={'extra_fields': {'order_id': self.order_id, 'total_price': totals.total_price}},
        )
        return totals

    async def create(self) -> Dict[str, Any]:
        """
        Insert a new order: fetch an order number, insert the header, insert
        the items. Same failure policy as submit().
        """
        form = self.validate()
        totals = compute_totals([item.model_dump() for item in form.order_items], form.model_dump())

        step = "generate_order_number"
        try:
            order_number = await self.gateway.rpc("generate_order_number")
            step = "insert_order"
            rows = await self.gateway.insert(
                "orders", {**self._header(form, totals), "order_number": order_number}
            )
            order = rows[0] if isinstance(rows, list) else rows
            self.order_id = order["id"]
            step = "insert_items"
            await self.gateway.insert("order_items", self._item_rows(form, self.order_id), returning=False)
        except (GatewayError, KeyError, IndexError, TypeError) as e:
            logger.error(f"Error creating order at step {step}: {e}", extra={'extra_fields': {'step': step}})
            raise SubmissionError(CREATE_FAILED_MESSAGE, step) from e

        logger.info(f"Order {order_number} created", extra={'extra_fields': {'order_id': self.order_id}})
        return order
