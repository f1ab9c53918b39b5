from app.application.order_form import compute_totals
from app.application.schemas import DashboardStats, OrderDetail
from app.application.views import (
    NOT_SPECIFIED,
    format_date,
    format_money,
    format_number,
    render_item_line_totals,
    render_order_card,
    render_order_detail,
    render_order_summary,
    render_product_card,
    render_stats_cards,
    status_badge,
)
from app.domain.models import Order, OrderItem, Product

from conftest import SEED


def _order(**overrides):
    return Order.model_validate({**SEED["orders"][0], **overrides})


def test_status_badges():
    assert status_badge("pending") == {"variant": "outline", "label": "In progress"}
    assert status_badge("completed") == {"variant": "default", "label": "Complete"}
    assert status_badge("cancelled") == {"variant": "destructive", "label": "Cancelled"}


def test_unknown_status_gets_neutral_badge():
    assert status_badge("on_hold") == {"variant": "secondary", "label": "on_hold"}
    assert status_badge(None) == {"variant": "secondary", "label": "Unknown"}


def test_number_formatting():
    assert format_number(1234.5) == "1,234.5"
    assert format_number(31) == "31"
    assert format_number(None) == "0"
    assert format_money(250, currency="SAR") == "250 SAR"
    assert format_money(1000000, currency="") == "1,000,000"


def test_date_formatting():
    assert format_date("2026-01-10T09:00:00+00:00") == "2026-01-10"
    assert format_date(None) == ""
    assert format_date("yesterday") == "yesterday"


def test_stats_cards():
    cards = render_stats_cards(DashboardStats(total_orders=2, total_revenue=131, total_customers=2))
    assert [card["title"] for card in cards] == [
        "Total orders",
        "Total revenue",
        "Customers",
        "Orders in progress",
        "Completed orders",
    ]
    assert cards[1]["value"] == format_money(131)


def test_order_card():
    card = render_order_card(_order())
    assert card["title"] == "Order #ORD-0001"
    assert card["badge"]["label"] == "In progress"
    assert card["total_pieces"] == 3
    assert card["created_at"] == "2026-01-10"
    assert card["detail_url"] == "/dashboard/orders/order-1"


def test_order_card_with_missing_totals():
    card = render_order_card(_order(total_price=None, total_pieces=None, status=None))
    assert card["total_pieces"] == 0
    assert card["total_price"] == format_money(0)
    assert card["badge"]["label"] == "Unknown"


def test_order_detail_fallbacks():
    items = [OrderItem.model_validate(row) for row in SEED["order_items"][:2]]
    view = render_order_detail(OrderDetail(order=_order(), items=items))

    abaya, scarf = view["items"]
    assert abaya["meters"] == "2.5"
    assert abaya["model"] == "A-1"
    assert "meters" not in scarf
    assert scarf["model"] == NOT_SPECIFIED
    assert scarf["size"] == NOT_SPECIFIED
    assert view["notes"] == "Deliver before Friday"
    assert view["summary"][-1] == {"label": "Total", "value": format_money(31), "emphasis": True}


def test_order_detail_without_notes():
    view = render_order_detail(OrderDetail(order=_order(notes=None), items=[]))
    assert "notes" not in view
    assert view["items"] == []


def test_product_card_hides_empty_prices():
    active, inactive = [render_product_card(Product.model_validate(row)) for row in SEED["products"]]

    assert active["badge"] == {"variant": "default", "label": "Active"}
    assert [price["label"] for price in active["prices"]] == ["Base price", "Fabric price"]
    assert [size["label"] for size in active["sizes"]] == ["S", "M", "L"]
    assert active["description"] == "Black crepe"

    assert inactive["badge"] == {"variant": "secondary", "label": "Inactive"}
    assert [price["label"] for price in inactive["prices"]] == ["Base price", "Tailoring price"]
    assert inactive["sizes"] == []
    assert "description" not in inactive


def test_editor_summary_and_line_totals():
    items = [
        {"product_name": "Abaya", "quantity": 2, "unit_price": 10},
        {"product_name": "Scarf", "quantity": 1, "unit_price": 5},
    ]
    surcharges = {"fabric_price": 3, "tailoring_price": 2, "extra_costs": 0, "tax_amount": 1}
    summary = render_order_summary(compute_totals(items, surcharges), surcharges)

    assert summary[0] == {"label": "Total pieces", "value": "3"}
    assert summary[1]["value"] == format_money(25)
    assert summary[-1]["value"] == format_money(31)
    assert render_item_line_totals(items) == [format_money(20), format_money(5)]
