# storefront/cart.py
"""
Cart store.

A cart is an ordered list of ``CartLine`` kept under a single key of a
key-value storage as a JSON array. There is at most one line per variant id;
``count``, ``subtotal`` and ``currency`` are always recomputed from the lines.
"""

import json
import logging
import os
import threading
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .models import CartLine

logger = logging.getLogger(__name__)

CART_KEY = "overlaymaps_cart"
MIN_QUANTITY = 1
MAX_QUANTITY = 20
DEFAULT_CURRENCY = "EUR"


def clamp_quantity(qty: int) -> int:
    return max(MIN_QUANTITY, min(MAX_QUANTITY, int(qty)))


# -------------------------
# Storage backends
# -------------------------

class MemoryStorage:
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Key-value storage backed by one JSON object on disk."""

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Cart storage %s unreadable, starting empty: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)


# -------------------------
# Cart store
# -------------------------

class CartStore:
    def __init__(self, storage=None, key: str = CART_KEY):
        self.storage = storage if storage is not None else MemoryStorage()
        self.key = key
        self._listeners: List[Callable[["CartStore"], None]] = []
        self._lines: List[CartLine] = self.load()

    # ---- persistence ----

    def load(self) -> List[CartLine]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("cart payload is not a list")
            return [CartLine.model_validate(item) for item in data]
        except (ValueError, TypeError, ValidationError) as e:
            # corrupted state is never surfaced; start over
            logger.warning("Resetting corrupted cart %s: %s", self.key, e)
            self.storage.delete(self.key)
            return []

    def save(self) -> None:
        payload = [line.model_dump(mode="json") for line in self._lines]
        self.storage.set(self.key, json.dumps(payload))

    # ---- listeners ----

    def subscribe(self, callback: Callable[["CartStore"], None]) -> None:
        self._listeners.append(callback)

    def _changed(self) -> None:
        for callback in self._listeners:
            callback(self)

    # ---- reads ----

    @property
    def lines(self) -> List[CartLine]:
        return [line.model_copy() for line in self._lines]

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0"))

    @property
    def currency(self) -> str:
        return self._lines[0].currency if self._lines else DEFAULT_CURRENCY

    def get(self, variant_id: int) -> Optional[CartLine]:
        for line in self._lines:
            if line.variant_id == variant_id:
                return line.model_copy()
        return None

    def __len__(self) -> int:
        return len(self._lines)

    # ---- mutations ----

    def add_or_increment(self, line: CartLine) -> List[CartLine]:
        qty = clamp_quantity(line.quantity)
        for i, existing in enumerate(self._lines):
            if existing.variant_id == line.variant_id:
                merged = min(MAX_QUANTITY, existing.quantity + qty)
                self._lines[i] = existing.model_copy(update={"quantity": merged})
                break
        else:
            self._lines.append(line.model_copy(update={"quantity": qty}))
        self.save()
        self._changed()
        return self.lines

    def remove(self, variant_id: int) -> List[CartLine]:
        before = len(self._lines)
        self._lines = [line for line in self._lines if line.variant_id != variant_id]
        if len(self._lines) != before:
            self.save()
            self._changed()
        return self.lines

    def set_quantity(self, variant_id: int, qty: int) -> List[CartLine]:
        qty = clamp_quantity(qty)
        for i, existing in enumerate(self._lines):
            if existing.variant_id == variant_id:
                self._lines[i] = existing.model_copy(update={"quantity": qty})
                self.save()
                self._changed()
                break
        return self.lines

    def clear(self) -> List[CartLine]:
        self._lines = []
        self.storage.delete(self.key)
        self._changed()
        return []
