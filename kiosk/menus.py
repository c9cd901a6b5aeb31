from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from threading import RLock
from typing import Dict, Iterable, List, Optional


def _to_price(value: object) -> Decimal:
    try:
        price = Decimal(str(value if value is not None else 0))
    except InvalidOperation as exc:
        raise ValueError(f"invalid price: {value!r}") from exc
    if price < 0:
        raise ValueError(f"negative price: {value!r}")
    return price


@dataclass(frozen=True)
class MenuItem:
    """Represents a single menu item."""

    id: str
    name: str
    price: Decimal = Decimal("0")
    category: str = ""

    def to_api(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object], category: str = "") -> "MenuItem":
        return cls(
            id=str(data.get("id", "")).strip(),
            name=str(data.get("name", "")).strip(),
            price=_to_price(data.get("price", 0)),
            category=str(data.get("category") or category),
        )


DEFAULT_MENU: Dict[str, List[Dict[str, object]]] = {
    "burgers": [
        {"id": "b1", "name": "Veg Burger", "price": "5.99"},
        {"id": "b2", "name": "Chicken Burger", "price": "6.99"},
        {"id": "b3", "name": "Beef Burger", "price": "7.99"},
    ],
    "pizzas": [
        {"id": "p1", "name": "Margherita", "price": "8.99"},
        {"id": "p2", "name": "Pepperoni", "price": "9.99"},
    ],
    "drinks": [
        {"id": "d1", "name": "Coke", "price": "1.99"},
        {"id": "d2", "name": "Orange Juice", "price": "2.49"},
    ],
}


class MenuCatalog:
    """Thread-safe in-memory catalogue resolved by item id."""

    def __init__(self) -> None:
        self._items: Dict[str, MenuItem] = {}
        self._categories: Dict[str, List[str]] = {}
        self._lock = RLock()

    @classmethod
    def default(cls) -> "MenuCatalog":
        catalog = cls()
        catalog.load_categories(DEFAULT_MENU)
        return catalog

    # ------------------------------------------------------------------
    def bootstrap_from_file(self, path: Path) -> None:
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        categories = payload.get("categories") if isinstance(payload, dict) else None
        if not isinstance(categories, dict) or not categories:
            return
        self.load_categories(categories)

    def load_categories(self, categories: Dict[str, Iterable[Dict[str, object]]]) -> None:
        for category, raw_items in categories.items():
            self.upsert(category, [MenuItem.from_dict(it, category=category) for it in raw_items])

    # ------------------------------------------------------------------
    def upsert(self, category: str, items: Iterable[MenuItem]) -> None:
        key = category.strip()
        if not key:
            raise ValueError("category name required")
        incoming: Dict[str, MenuItem] = {}
        for item in items:
            if item.id:
                incoming[item.id] = item
        with self._lock:
            # an id belongs to exactly one category; the latest upsert wins
            for other, ids in self._categories.items():
                if other != key:
                    ids[:] = [i for i in ids if i not in incoming]
            for old_id in self._categories.get(key, []):
                if old_id not in incoming:
                    self._items.pop(old_id, None)
            self._categories[key] = list(incoming)
            self._items.update(incoming)

    # ------------------------------------------------------------------
    def find(self, item_id: Optional[str]) -> Optional[MenuItem]:
        if not item_id:
            return None
        with self._lock:
            return self._items.get(item_id.strip())

    def list(self, category: Optional[str] = None) -> List[MenuItem]:
        with self._lock:
            if category is None:
                return [self._items[i] for ids in self._categories.values() for i in ids]
            return [self._items[i] for i in self._categories.get(category.strip(), [])]

    def categories(self) -> List[str]:
        with self._lock:
            return list(self._categories.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["MenuCatalog", "MenuItem", "DEFAULT_MENU"]
