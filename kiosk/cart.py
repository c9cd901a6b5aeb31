from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, List, Optional

from .menus import MenuCatalog, MenuItem

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class ActionKind(str, Enum):
    NO_ACTION = "no_action"
    ADD_ITEM = "add_item"
    FINALIZE = "finalize"
    ADD_AND_FINALIZE = "add_and_finalize"


@dataclass(frozen=True)
class AssistantAction:
    """Structured instruction riding alongside an assistant reply."""

    add_item_id: Optional[str] = None
    finalize_order: bool = False

    @property
    def kind(self) -> ActionKind:
        if self.add_item_id and self.finalize_order:
            return ActionKind.ADD_AND_FINALIZE
        if self.add_item_id:
            return ActionKind.ADD_ITEM
        if self.finalize_order:
            return ActionKind.FINALIZE
        return ActionKind.NO_ACTION

    @classmethod
    def none(cls) -> "AssistantAction":
        return cls()


@dataclass
class CartLine:
    item: MenuItem
    quantity: int = 1

    @property
    def subtotal(self) -> Decimal:
        return self.item.price * self.quantity

    def to_api(self) -> Dict[str, object]:
        return {
            "itemId": self.item.id,
            "itemName": self.item.name,
            "quantity": self.quantity,
            "price": float(self.item.price),
        }


@dataclass
class Cart:
    lines: List[CartLine] = field(default_factory=list)
    ready_to_finalize: bool = False

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0")).quantize(CENT, rounding=ROUND_HALF_UP)

    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, item_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.item.id == item_id:
                return line
        return None

    def copy(self) -> "Cart":
        return Cart(
            lines=[CartLine(item=line.item, quantity=line.quantity) for line in self.lines],
            ready_to_finalize=self.ready_to_finalize,
        )

    def as_state(self) -> Dict[str, object]:
        return {
            "lines": [line.to_api() for line in self.lines],
            "total": f"{self.total:.2f}",
            "readyToFinalize": self.ready_to_finalize,
        }


class CartReconciler:
    """Applies assistant actions to a cart.

    Unknown item ids are tolerated and ignored. Adding an id already in the
    cart raises that line's quantity. ``ready_to_finalize`` mirrors the latest
    action only and is never latched.
    """

    def __init__(self, catalog: MenuCatalog) -> None:
        self.catalog = catalog

    def apply_action(self, action: AssistantAction, cart: Cart) -> Cart:
        if action.add_item_id:
            item = self.catalog.find(action.add_item_id)
            if item is None:
                logger.info("[Cart] ignoring unknown item id %r", action.add_item_id)
            else:
                line = cart.line_for(item.id)
                if line is None:
                    cart.lines.append(CartLine(item=item, quantity=1))
                else:
                    line.quantity += 1
                logger.info("[Cart] added %s (%s), total=%s", item.name, item.id, cart.total)
        cart.ready_to_finalize = bool(action.finalize_order)
        return cart


__all__ = ["ActionKind", "AssistantAction", "Cart", "CartLine", "CartReconciler"]
