from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

import requests
from pydantic import BaseModel, ConfigDict

from .cart import Cart
from .errors import OrderNotReadyError, OrderSubmissionError, SessionNotPairedError
from .http import KioskClient
from .state import KioskContext, PairingState

logger = logging.getLogger(__name__)

ORDER_STATUS_PENDING = "PENDING"


class OrderLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    itemId: str
    itemName: str
    quantity: int
    price: float


class Order(BaseModel):
    model_config = ConfigDict(frozen=True)

    userName: str
    restaurantId: int
    tenantId: int
    status: str = ORDER_STATUS_PENDING
    itemDetails: List[OrderLine]


def build_order(cart: Cart, user: str, restaurant_id: int, tenant_id: int) -> Order:
    return Order(
        userName=user,
        restaurantId=restaurant_id,
        tenantId=tenant_id,
        itemDetails=[
            OrderLine(
                itemId=line.item.id,
                itemName=line.item.name,
                quantity=line.quantity,
                price=float(line.item.price),
            )
            for line in cart.lines
        ],
    )


@dataclass(frozen=True)
class OrderResult:
    order: Order
    cart: Cart
    total: Decimal
    submitted_remotely: bool

    def summary_lines(self) -> List[Tuple[str, str]]:
        """Rows for the confirmation view: ("2 x Coke", "$3.98")."""
        return [
            (f"{line.quantity} x {line.item.name}", f"${line.subtotal:.2f}")
            for line in self.cart.lines
        ]

    def formatted_total(self) -> str:
        return f"${self.total:.2f}"


class OrderSubmitter:
    """Places finalized carts with the order service.

    With ``submit=False`` the network call is skipped and success is assumed.
    Local state is only touched after success.
    """

    def __init__(
        self,
        client: KioskClient,
        restaurant_id: Optional[int] = None,
        tenant_id: Optional[int] = None,
        submit: Optional[bool] = None,
    ) -> None:
        self.client = client
        cfg = client.config
        self.restaurant_id = restaurant_id if restaurant_id is not None else cfg.restaurant_id
        self.tenant_id = tenant_id if tenant_id is not None else cfg.tenant_id
        self.submit_enabled = submit if submit is not None else cfg.submit_orders

    # ------------------------------------------------------------------
    def submit(
        self,
        cart: Cart,
        user: str,
        restaurant_id: Optional[int] = None,
        tenant_id: Optional[int] = None,
    ) -> OrderResult:
        snapshot = cart.copy()
        order = build_order(
            snapshot,
            user,
            restaurant_id if restaurant_id is not None else self.restaurant_id,
            tenant_id if tenant_id is not None else self.tenant_id,
        )
        payload = order.model_dump()
        if self.submit_enabled:
            try:
                r = self.client.place_order(payload)
            except requests.RequestException as exc:
                logger.error("[Order] error placing order: %s", exc)
                raise OrderSubmissionError(f"Failed to place order: {exc}") from exc
            if not r.ok:
                logger.error("[Order] order service answered %s: %s", r.status_code, r.text[:200])
                raise OrderSubmissionError(f"Failed to place order: {r.status_code}", status_code=r.status_code)
        else:
            logger.info("[Order] submission disabled, skipping request")
        logger.info("[Order] order placed successfully for %s, total=%s", user, snapshot.total)
        return OrderResult(order=order, cart=snapshot, total=snapshot.total, submitted_remotely=self.submit_enabled)

    def place_order(self, context: KioskContext) -> OrderResult:
        with context.lock:
            session = context.session
            if session is None or session.pairing_state is not PairingState.PAIRED or not session.paired_user:
                raise SessionNotPairedError("Session is not paired yet")
            if context.submitted:
                raise OrderNotReadyError("Order already submitted")
            if context.submitting:
                raise OrderNotReadyError("Order submission in progress")
            if context.cart.is_empty():
                raise OrderNotReadyError("Cart is empty")
            if not context.cart.ready_to_finalize:
                raise OrderNotReadyError("Order is not ready to finalize")
            cart = context.cart.copy()
            user = session.paired_user
            generation = context.generation
            context.submitting = True

        placed = False
        try:
            result = self.submit(cart, user)
            placed = True
        except OrderSubmissionError as exc:
            with context.lock:
                if context.generation == generation:
                    context.last_error = str(exc)
            raise
        finally:
            # submitting and submitted change under one lock hold
            with context.lock:
                if context.generation == generation:
                    context.submitting = False
                    if placed:
                        context.submitted = True
                        context.last_error = None
        return result


__all__ = [
    "ORDER_STATUS_PENDING",
    "Order",
    "OrderLine",
    "OrderResult",
    "OrderSubmitter",
    "build_order",
]
