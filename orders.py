"""
Order placement shared by authenticated and guest checkout.

Both flows persist the submitted item snapshot and delivery address as-is,
then announce the new order on the OrderEventHub. A guest order gets a
throwaway account so every order still has an owner.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import database
from auth import hash_password
from errors import InvalidRequest, NotFound
from notifications import OrderEventHub
from schemas import CheckoutRequest, Order, OrderItem, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedCheckout:
    account_id: str


@dataclass(frozen=True)
class GuestCheckout:
    delivery_address: Optional[Dict[str, Any]] = None


Checkout = Union[AuthenticatedCheckout, GuestCheckout]


def order_total(items: List[OrderItem], declared: Optional[float]) -> float:
    # The client-declared total is stored as sent; only fill it in when absent.
    if declared is not None:
        return declared
    return sum((item.price or 0) * (item.quantity or 0) for item in items)


def create_guest_account(delivery_address: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    address = delivery_address or {}
    guest = User(
        name=address.get("name") or "Guest",
        email=f"guest+{int(time.time() * 1000)}-{secrets.token_hex(4)}@local",
        password_hash=hash_password(secrets.token_urlsafe(16)),
        phone=address.get("phone") or "",
    )
    guest_id = database.create_document("user", guest)
    return database.find_by_id("user", database.parse_object_id(guest_id))


def resolve_owner(checkout: Checkout) -> Dict[str, Any]:
    if isinstance(checkout, AuthenticatedCheckout):
        oid = database.parse_object_id(checkout.account_id)
        account = database.find_by_id("user", oid) if oid else None
        if not account:
            raise NotFound("User not found")
        return account
    return create_guest_account(checkout.delivery_address)


def order_summary(order: Dict[str, Any], owner: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(order["_id"]),
        "userName": owner.get("name"),
        "deliveryAddress": order.get("deliveryAddress"),
        "items": order.get("items", []),
        "total": order.get("total"),
        "createdAt": order.get("createdAt"),
        "status": order.get("status"),
    }


def place_order(checkout: Checkout, payload: CheckoutRequest, hub: OrderEventHub) -> str:
    """Persist an order for `checkout` and broadcast it. Returns the order id."""
    if not payload.items:
        raise InvalidRequest("No items")

    owner = resolve_owner(checkout)
    delivery_address = None
    if payload.delivery_address is not None:
        delivery_address = payload.delivery_address.model_dump(by_alias=True, exclude_unset=True)

    order = Order(
        user_id=str(owner["_id"]),
        items=[item.model_dump(by_alias=True, exclude_unset=True) for item in payload.items],
        total=order_total(payload.items, payload.total),
        delivery_address=delivery_address,
        status="pending",
    )
    order_id = database.create_document("order", order)
    logger.info("Order %s placed by %s", order_id, owner.get("email"))

    try:
        stored = database.find_by_id("order", database.parse_object_id(order_id))
        hub.broadcast(order_summary(stored, owner))
    except Exception:
        logger.exception("Failed to broadcast order %s", order_id)
    return order_id
