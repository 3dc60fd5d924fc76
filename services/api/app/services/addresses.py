from __future__ import annotations

import threading
from typing import Any
from uuid import uuid4

from services.api.app.models.order import Address
from services.api.app.services.errors import AddressNotFoundError


class AddressBook:
    """Saved shipping addresses per user.

    Whenever a user has addresses, exactly one of them is the default.
    """

    def __init__(self) -> None:
        self._addresses: dict[str, list[Address]] = {}
        self._lock = threading.RLock()

    def addresses_for(self, user_id: str) -> list[Address]:
        with self._lock:
            return [a.model_copy() for a in self._addresses.get(user_id, [])]

    def default_for(self, user_id: str) -> Address | None:
        with self._lock:
            for address in self._addresses.get(user_id, []):
                if address.is_default:
                    return address.model_copy()
            return None

    def add(self, user_id: str, address: Address) -> Address:
        with self._lock:
            book = self._addresses.setdefault(user_id, [])
            saved = address.model_copy(update={"id": f"addr_{uuid4().hex[:12]}"})
            make_default = not book or address.is_default
            saved.is_default = False
            book.append(saved)
            if make_default:
                self._mark_default(book, saved.id)
            return saved.model_copy()

    def update(self, user_id: str, address_id: str, updates: dict[str, Any]) -> Address:
        with self._lock:
            book = self._addresses.get(user_id, [])
            index = self._index(user_id, book, address_id)

            wants_default = updates.get("is_default") is True
            fields = {k: v for k, v in updates.items() if k not in ("id", "is_default")}
            book[index] = book[index].model_copy(update=fields)
            if wants_default:
                self._mark_default(book, address_id)
            return book[index].model_copy()

    def delete(self, user_id: str, address_id: str) -> None:
        with self._lock:
            book = self._addresses.get(user_id, [])
            index = self._index(user_id, book, address_id)
            removed = book.pop(index)
            if removed.is_default and book:
                book[0].is_default = True

    def set_default(self, user_id: str, address_id: str) -> Address:
        with self._lock:
            book = self._addresses.get(user_id, [])
            index = self._index(user_id, book, address_id)
            self._mark_default(book, address_id)
            return book[index].model_copy()

    @staticmethod
    def _mark_default(book: list[Address], address_id: str | None) -> None:
        for address in book:
            address.is_default = address.id == address_id

    @staticmethod
    def _index(user_id: str, book: list[Address], address_id: str) -> int:
        for i, address in enumerate(book):
            if address.id == address_id:
                return i
        raise AddressNotFoundError(user_id, address_id)
