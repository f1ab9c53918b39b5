"""
Display fragments for the admin screens.

Everything here is a pure mapping from rows to plain dicts that a UI can
render directly: no gateway calls and no mutation of the inputs.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from app.core_settings import get_settings
from app.domain.models import Order, OrderStatus, Product, to_number
from .schemas import DashboardStats, OrderDetail, OrderTotals

NOT_SPECIFIED = "Not specified"
NO_ORDERS = "No orders yet"
NO_PRODUCTS = "No products yet"

# status -> (badge variant, label)
STATUS_BADGES = {
    OrderStatus.PENDING.value: ("outline", "In progress"),
    OrderStatus.COMPLETED.value: ("default", "Complete"),
    OrderStatus.CANCELLED.value: ("destructive", "Cancelled"),
}
FALLBACK_VARIANT = "secondary"
STATUS_OPTIONS = [{"value": key, "label": label} for key, (_, label) in STATUS_BADGES.items()]

MENU_ITEMS = [
    {"title": "Home", "icon": "home", "path": "/dashboard"},
    {"title": "Orders", "icon": "shopping-cart", "path": "/dashboard/orders"},
    {"title": "Products", "icon": "package", "path": "/dashboard/products"},
    {"title": "Sign out", "icon": "log-out", "action": "/auth/logout"},
]


def status_badge(status: Optional[str]) -> Dict[str, str]:
    """Badge for an order status; unknown values get a neutral badge."""
    key = status.value if isinstance(status, OrderStatus) else status
    if key in STATUS_BADGES:
        variant, label = STATUS_BADGES[key]
    else:
        variant, label = FALLBACK_VARIANT, str(key) if key else "Unknown"
    return {"variant": variant, "label": label}


def format_number(value: Any) -> str:
    """Grouped thousands, at most two decimals, no trailing zeros."""
    text = f"{to_number(value):,.2f}"
    return text.rstrip("0").rstrip(".")


def format_money(value: Any, currency: Optional[str] = None) -> str:
    currency = currency if currency is not None else get_settings().CURRENCY_LABEL
    return f"{format_number(value)} {currency}".strip()


def format_date(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    try:
        return datetime.fromisoformat(str(value)).strftime("%Y-%m-%d")
    except ValueError:
        return str(value)


def render_stats_cards(stats: DashboardStats) -> List[Dict[str, Any]]:
    return [
        {"title": "Total orders", "value": stats.total_orders, "icon": "shopping-cart", "color": "text-blue-600"},
        {"title": "Total revenue", "value": format_money(stats.total_revenue), "icon": "trending-up", "color": "text-green-600"},
        {"title": "Customers", "value": stats.total_customers, "icon": "users", "color": "text-purple-600"},
        {"title": "Orders in progress", "value": stats.pending_orders, "icon": "clock", "color": "text-orange-600"},
        {"title": "Completed orders", "value": stats.completed_orders, "icon": "package", "color": "text-emerald-600"},
    ]


def render_order_card(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "title": f"Order #{order.order_number}",
        "badge": status_badge(order.status),
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "total_pieces": order.total_pieces or 0,
        "total_price": format_money(order.total_price),
        "created_at": format_date(order.created_at),
        "detail_url": f"/dashboard/orders/{order.id}",
    }


def render_order_detail(detail: OrderDetail) -> Dict[str, Any]:
    order = detail.order
    items = []
    for item in detail.items:
        fragment = {
            "id": item.id,
            "product_name": item.product_name,
            "model": item.model or NOT_SPECIFIED,
            "size": item.size or NOT_SPECIFIED,
            "quantity": item.quantity or 0,
            "unit_price": format_money(item.unit_price),
            "total_price": format_money(item.total_price),
        }
        # zero or missing meterage is not shown
        if item.meters:
            fragment["meters"] = format_number(item.meters)
        items.append(fragment)

    view = {
        "id": order.id,
        "title": f"Order details #{order.order_number}",
        "badge": status_badge(order.status),
        "customer": {
            "name": order.customer_name,
            "phone": order.customer_phone,
            "created_at": format_date(order.created_at),
        },
        "summary": [
            {"label": "Fabric price", "value": format_money(order.fabric_price)},
            {"label": "Tailoring price", "value": format_money(order.tailoring_price)},
            {"label": "Extra costs", "value": format_money(order.extra_costs)},
            {"label": "Tax", "value": format_money(order.tax_amount)},
            {"label": "Total", "value": format_money(order.total_price), "emphasis": True},
        ],
        "items": items,
        "edit_url": f"/dashboard/orders/{order.id}/edit",
    }
    if order.notes:
        view["notes"] = order.notes
    return view


def render_product_card(product: Product) -> Dict[str, Any]:
    prices = [{"label": "Base price", "value": format_money(product.price)}]
    if product.fabric_price:
        prices.append({"label": "Fabric price", "value": format_money(product.fabric_price)})
    if product.tailoring_price:
        prices.append({"label": "Tailoring price", "value": format_money(product.tailoring_price)})

    card = {
        "id": product.id,
        "title": product.name,
        "subtitle": f"Model: {product.model}",
        "badge": {
            "variant": "default" if product.is_active else "secondary",
            "label": "Active" if product.is_active else "Inactive",
        },
        "prices": prices,
        "sizes": [{"variant": "outline", "label": size} for size in product.sizes or []],
    }
    if product.description:
        card["description"] = product.description
    return card


def render_order_summary(totals: OrderTotals, surcharges: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Price summary block of the order editor."""
    return [
        {"label": "Total pieces", "value": format_number(totals.total_pieces)},
        {"label": "Products total", "value": format_money(totals.items_total)},
        {"label": "Fabric price", "value": format_money(surcharges.get("fabric_price"))},
        {"label": "Tailoring price", "value": format_money(surcharges.get("tailoring_price"))},
        {"label": "Extra costs", "value": format_money(surcharges.get("extra_costs"))},
        {"label": "Tax", "value": format_money(surcharges.get("tax_amount"))},
        {"label": "Grand total", "value": format_money(totals.total_price), "emphasis": True},
    ]


def render_item_line_totals(items: List[Mapping[str, Any]]) -> List[str]:
    """Per-item "quantity x unit price" shown under each editor row."""
    return [
        format_money(to_number(item.get("quantity")) * to_number(item.get("unit_price")))
        for item in items
    ]
