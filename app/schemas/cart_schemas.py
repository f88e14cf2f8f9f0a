from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from sqlmodel import SQLModel, Field

class CartAddRequest(SQLModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)

class CartUpdateRequest(SQLModel):
    quantity: int


class ProductSnapshot(BaseModel):
    """Product fields as they were when the cart was read."""
    model_config = ConfigDict(frozen=True)

    name: str
    price: float
    stock: int
    seller_id: Optional[int]


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    buyer_id: int
    product_id: int
    quantity: int
    product: Optional[ProductSnapshot] = None  # None when the product is gone

    @property
    def seller_id(self) -> Optional[int]:
        return self.product.seller_id if self.product else None

    @property
    def price(self) -> float:
        return self.product.price if self.product else 0

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class CartLineOut(BaseModel):
    item_id: int
    product_id: int
    product_name: Optional[str]
    seller_id: Optional[int]
    price: float
    quantity: int
    stock: int
    total: float
    total_display: str


class RemovedItem(BaseModel):
    item_id: int
    product_id: int
    quantity: int
