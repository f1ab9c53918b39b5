from contextlib import nullcontext
from typing import Any, Dict, Optional

from cachetools import TTLCache
from fastapi import APIRouter, Body, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from app.api.auth import get_current_session, get_user_gateway
from app.application.order_form import (
    FormValidationError,
    OrderFormController,
    OrderLoadError,
    SubmissionError,
    SubmissionGuard,
    SubmissionInProgress,
)
from app.application.schemas import Notification, SessionInfo
from app.application.service import DashboardService, OrderService, ProductService
from app.application.views import (
    MENU_ITEMS,
    NO_ORDERS,
    NO_PRODUCTS,
    STATUS_OPTIONS,
    render_item_line_totals,
    render_order_card,
    render_order_detail,
    render_order_summary,
    render_product_card,
    render_stats_cards,
)
from app.infrastructure.gateway import GatewayClient

router = APIRouter(prefix="/api", tags=["admin"], dependencies=[Depends(get_current_session)])

submission_guard = SubmissionGuard()

# Idempotency-Key -> response of the create that used it
created_orders: TTLCache = TTLCache(maxsize=1024, ttl=600)


def _editor_state(controller: OrderFormController) -> Dict[str, Any]:
    totals = controller.totals()
    return {
        "values": controller.snapshot(),
        "totals": totals.model_dump(),
        "summary": render_order_summary(totals, controller.surcharges()),
        "item_totals": render_item_line_totals(controller.items),
        "can_remove_items": len(controller.items) > 1,
    }


def _notify(status_code: int, title: str, description: str) -> JSONResponse:
    notification = Notification(variant="destructive", title=title, description=description)
    return JSONResponse(status_code=status_code, content={"success": False, "notification": notification.model_dump()})


def _invalid(e: FormValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"success": False, "errors": e.errors})


@router.get("/menu")
async def menu():
    return MENU_ITEMS


@router.get("/dashboard")
async def dashboard(gateway: GatewayClient = Depends(get_user_gateway)):
    stats = await DashboardService(gateway).stats()
    return {"stats": stats.model_dump(), "cards": render_stats_cards(stats)}


@router.get("/orders")
async def list_orders(gateway: GatewayClient = Depends(get_user_gateway)):
    """Order cards, newest first."""
    orders = await OrderService(gateway).list()
    return {
        "orders": [render_order_card(order) for order in orders],
        "empty_message": None if orders else NO_ORDERS,
    }


@router.post("/orders/preview")
async def preview_order(payload: Dict[str, Any] = Body(...), gateway: GatewayClient = Depends(get_user_gateway)):
    """Recompute the editor's totals for unsaved values; no gateway call."""
    return _editor_state(OrderFormController.from_payload(gateway, payload))


@router.post("/orders", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: Dict[str, Any] = Body(...),
    gateway: GatewayClient = Depends(get_user_gateway),
    session: SessionInfo = Depends(get_current_session),
    idempotency_key: Optional[str] = Header(default=None),
):
    """
    Create an order. Repeats of a request carrying the same Idempotency-Key
    get the first response back instead of creating a second order.
    """
    replay_key = f"{session.user_id}:{idempotency_key}" if idempotency_key else None
    if replay_key and replay_key in created_orders:
        return created_orders[replay_key]

    controller = OrderFormController.from_payload(gateway, payload)
    try:
        with submission_guard.hold(f"new:{replay_key}") if replay_key else nullcontext():
            order = await controller.create()
    except FormValidationError as e:
        return _invalid(e)
    except SubmissionInProgress:
        return _notify(status.HTTP_409_CONFLICT, "Order is being saved", "Please wait for the current save to finish.")
    except SubmissionError as e:
        return _notify(status.HTTP_502_BAD_GATEWAY, "Error creating order", e.message)

    result = {
        "success": True,
        "notification": Notification(title="Order created", description="The order was saved.").model_dump(),
        "order": order,
        "redirect": f"/dashboard/orders/{controller.order_id}",
    }
    if replay_key:
        created_orders[replay_key] = result
    return result


@router.get("/orders/{order_id}")
async def get_order(order_id: str, gateway: GatewayClient = Depends(get_user_gateway)):
    detail = await OrderService(gateway).get_detail(order_id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return render_order_detail(detail)


@router.get("/orders/{order_id}/edit")
async def edit_order(order_id: str, gateway: GatewayClient = Depends(get_user_gateway)):
    controller = OrderFormController(gateway, order_id)
    try:
        await controller.load()
    except OrderLoadError as e:
        return _notify(status.HTTP_404_NOT_FOUND, "Error loading order", str(e))
    return {"order_id": order_id, "status_options": STATUS_OPTIONS, **_editor_state(controller)}


@router.put("/orders/{order_id}")
async def update_order(
    order_id: str,
    payload: Dict[str, Any] = Body(...),
    gateway: GatewayClient = Depends(get_user_gateway),
):
    controller = OrderFormController.from_payload(gateway, payload, order_id=order_id)
    try:
        with submission_guard.hold(order_id):
            totals = await controller.submit()
    except FormValidationError as e:
        return _invalid(e)
    except SubmissionInProgress:
        return _notify(status.HTTP_409_CONFLICT, "Order is being saved", "Please wait for the current save to finish.")
    except SubmissionError as e:
        return _notify(status.HTTP_502_BAD_GATEWAY, "Error updating order", e.message)
    return {
        "success": True,
        "notification": Notification(title="Order updated", description="Your changes were saved.").model_dump(),
        "totals": totals.model_dump(),
        "redirect": "/dashboard/orders",
    }


@router.get("/products")
async def list_products(gateway: GatewayClient = Depends(get_user_gateway)):
    products = await ProductService(gateway).list()
    return {
        "products": [render_product_card(product) for product in products],
        "empty_message": None if products else NO_PRODUCTS,
    }
