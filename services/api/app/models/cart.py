from __future__ import annotations

from pydantic import BaseModel, Field


class ProductSnapshot(BaseModel):
    """Catalog data captured when an item is put in the cart.

    Prices are never looked up again during checkout.
    """

    id: str = Field(..., min_length=1)
    name: str
    price: int = Field(..., ge=0)
    sizes: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    image: str | None = None


class LineItem(BaseModel):
    product_id: str
    name: str
    unit_price: int
    quantity: int = Field(..., ge=1)
    size: str
    color: str

    @property
    def variant_key(self) -> tuple[str, str]:
        return (self.size, self.color)

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    def matches(self, product_id: str, size: str, color: str) -> bool:
        return self.product_id == product_id and self.variant_key == (size, color)


class CartTotals(BaseModel):
    subtotal: int
    shipping: int
    tax: int
    total: int


class CartView(BaseModel):
    session_id: str
    items: list[LineItem]
    item_count: int
    is_open: bool
    totals: CartTotals


class AddItemRequest(BaseModel):
    product: ProductSnapshot
    size: str
    color: str
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    product_id: str
    size: str
    color: str
    quantity: int


class RemoveItemRequest(BaseModel):
    product_id: str
    size: str
    color: str


class SessionResponse(BaseModel):
    session_id: str
