from typing import List
from sqlmodel import Session, select

from app.models.cart import CartItem
from app.models.product import Product
from app.schemas.cart_schemas import CartLine, ProductSnapshot


def read_cart_snapshot(session: Session, buyer_id: int) -> List[CartLine]:
    """
    Load the buyer's cart with product price/stock/seller resolved now.

    A line whose product was deleted or deactivated comes back with
    ``product=None`` instead of failing the read.
    """
    rows = session.exec(
        select(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id, isouter=True)
        .where(CartItem.user_id == buyer_id)
        .order_by(CartItem.created_at, CartItem.id)
    ).all()

    lines = []
    for item, product in rows:
        snapshot = None
        if product is not None and product.is_active:
            snapshot = ProductSnapshot(
                name=product.name,
                price=product.price or 0,
                stock=product.stock or 0,
                seller_id=product.seller_id,
            )

        lines.append(
            CartLine(
                id=item.id,
                buyer_id=item.user_id,
                product_id=item.product_id,
                quantity=item.quantity,
                product=snapshot,
            )
        )

    return lines
