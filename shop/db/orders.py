from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from shop.db.config import connect

CART_STATUS = "processing"


class OrderStore(Protocol):
    def find_cart(self, user_id: int) -> Optional[Dict[str, Any]]: ...


def _num(value: Any) -> Any:
    return float(value) if isinstance(value, Decimal) else value


class PostgresOrderStore:
    def __init__(self, dsn: str):
        self._dsn = dsn

    def find_cart(self, user_id: int) -> Optional[Dict[str, Any]]:
        """
        Return the user's open ("processing") order with its line items and products.

        Returns None when the user has no open order.
        """
        with connect(self._dsn) as conn:
            order = conn.execute(
                """
                SELECT id, status, buyer_id, created_at
                FROM orders
                WHERE status = %s AND buyer_id = %s
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (CART_STATUS, user_id),
            ).fetchone()
            if not order:
                return None

            order_id, status, buyer_id, created_at = order
            rows = conn.execute(
                """
                SELECT oi.id, oi.quantity, oi.price, p.id, p.name, p.price, p.image_url
                FROM order_items oi JOIN products p ON p.id = oi.product_id
                WHERE oi.order_id = %s
                ORDER BY oi.id
                """,
                (order_id,),
            ).fetchall()

        items: List[Dict[str, Any]] = []
        for item_id, quantity, price, product_id, product_name, product_price, image_url in rows:
            items.append(
                {
                    "id": item_id,
                    "quantity": quantity,
                    "price": _num(price),
                    "product_id": product_id,
                    "product": {
                        "id": product_id,
                        "name": product_name,
                        "price": _num(product_price),
                        "image_url": image_url,
                    },
                }
            )
        return {
            "id": order_id,
            "status": status,
            "buyer_id": buyer_id,
            "created_at": created_at.isoformat() if created_at else None,
            "order_items": items,
        }
