from typing import List, Optional

from pydantic import ValidationError

from shared.core import get_logger

from app.domain.models import Order, OrderItem, OrderStatus, Product, Profile, to_number
from app.infrastructure.gateway import GatewayClient, GatewayError
from .schemas import DashboardStats, OrderDetail

logger = get_logger(__name__)

# Read failures are logged and degrade to empty results; nothing is retried.
READ_ERRORS = (GatewayError, ValidationError)


class DashboardService:
    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    async def stats(self) -> DashboardStats:
        """Order counts, revenue and customer count for the landing page."""
        try:
            orders = await self.gateway.select("orders", columns="total_price,status")
        except GatewayError as e:
            logger.error(f"Error fetching stats: {e}")
            return DashboardStats()

        try:
            customers = await self.gateway.select("customers", columns="id")
        except GatewayError as e:
            logger.error(f"Error fetching customer count: {e}")
            customers = []

        return DashboardStats(
            total_orders=len(orders),
            total_revenue=sum(to_number(order.get("total_price")) for order in orders),
            total_customers=len(customers),
            pending_orders=sum(1 for order in orders if order.get("status") == OrderStatus.PENDING.value),
            completed_orders=sum(1 for order in orders if order.get("status") == OrderStatus.COMPLETED.value),
        )


class OrderService:
    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    async def list(self) -> List[Order]:
        """Newest orders first."""
        try:
            rows = await self.gateway.select("orders", order="created_at", ascending=False)
            return [Order.model_validate(row) for row in rows]
        except READ_ERRORS as e:
            logger.error(f"Error fetching orders: {e}")
            return []

    async def get(self, order_id: str) -> Order:
        row = await self.gateway.select("orders", filters={"id": order_id}, single=True)
        return Order.model_validate(row)

    async def items(self, order_id: str) -> List[OrderItem]:
        rows = await self.gateway.select(
            "order_items", filters={"order_id": order_id}, order="created_at"
        )
        return [OrderItem.model_validate(row) for row in rows]

    async def get_detail(self, order_id: str) -> Optional[OrderDetail]:
        """The order with its line items, or None when it cannot be read."""
        try:
            order = await self.get(order_id)
            items = await self.items(order_id)
        except READ_ERRORS as e:
            logger.error(f"Error fetching order details for {order_id}: {e}")
            return None
        return OrderDetail(order=order, items=items)


class ProductService:
    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    async def list(self) -> List[Product]:
        try:
            rows = await self.gateway.select("products", order="created_at", ascending=False)
            return [Product.model_validate(row) for row in rows]
        except READ_ERRORS as e:
            logger.error(f"Error fetching products: {e}")
            return []


class ProfileService:
    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    async def get(self, user_id: str) -> Optional[Profile]:
        try:
            row = await self.gateway.select("profiles", filters={"user_id": user_id}, single=True)
            return Profile.model_validate(row)
        except READ_ERRORS as e:
            logger.warning(f"No profile for user {user_id}: {e}")
            return None
