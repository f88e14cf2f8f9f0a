from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete
from sqlmodel import Session, select
from app.database import get_session
from app.models.cart import CartItem
from app.models.product import Product
from app.models.user import User
from app.schemas.cart_schemas import CartAddRequest, CartLine, CartLineOut, CartUpdateRequest, RemovedItem
from app.schemas.checkout_schemas import CartResponse, PricingSummary
from app.services.cart_snapshot import read_cart_snapshot
from app.services.coupon_service import current_coupon
from app.services.pricing import CartPricing, format_naira, price_cart
from app.services.seller_partition import partition_by_seller, unresolved_lines
from app.utils.token import get_current_user  # JWT dependency


router = APIRouter()


def line_out(line: CartLine) -> CartLineOut:
    return CartLineOut(
        item_id=line.id,
        product_id=line.product_id,
        product_name=line.product.name if line.product else None,
        seller_id=line.seller_id,
        price=line.price,
        quantity=line.quantity,
        stock=line.product.stock if line.product else 0,
        total=line.line_total,
        total_display=format_naira(line.line_total),
    )


def removed_out(line: CartLine) -> RemovedItem:
    return RemovedItem(item_id=line.id, product_id=line.product_id, quantity=line.quantity)


def pricing_summary(pricing: CartPricing) -> PricingSummary:
    return PricingSummary(
        subtotal=pricing.grand_subtotal,
        delivery=pricing.grand_delivery,
        discount=pricing.grand_discount,
        total=pricing.grand_total,
        subtotal_display=format_naira(pricing.grand_subtotal),
        delivery_display=format_naira(pricing.grand_delivery),
        discount_display=format_naira(pricing.grand_discount),
        total_display=format_naira(pricing.grand_total),
    )


# View Cart

@router.get("/", response_model=CartResponse)
def get_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    lines = read_cart_snapshot(session, current_user.id)
    coupon, notice = current_coupon(session, current_user.id, lines)
    pricing = price_cart(partition_by_seller(lines), coupon)

    return CartResponse(
        items=[line_out(line) for line in lines if line.product],
        removed_items=[removed_out(line) for line in unresolved_lines(lines)],
        summary=pricing_summary(pricing),
        coupon_notice=notice,
    )


# Add to Cart

@router.post("/add")
def add_to_cart(
    data: CartAddRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    product = session.get(Product, data.product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    if product.seller_id == current_user.id:
        raise HTTPException(400, "You cannot buy your own product")

    # Check if the user already has this item
    existing_item = session.exec(
        select(CartItem).where(
            CartItem.user_id == current_user.id,
            CartItem.product_id == data.product_id
        )
    ).first()

    if existing_item:
        existing_item.quantity += data.quantity
        session.add(existing_item)
        session.commit()
        session.refresh(existing_item)
        return {"message": "Cart updated", "item": existing_item}

    new_item = CartItem(
        user_id=current_user.id,
        product_id=product.id,
        quantity=data.quantity,
    )

    session.add(new_item)
    session.commit()
    session.refresh(new_item)

    return {"message": "Added to cart", "item": new_item}


# Update Cart
@router.put("/update/{item_id}")
def update_cart_item(
    item_id: int,
    data: CartUpdateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    item = session.get(CartItem, item_id)

    if not item or item.user_id != current_user.id:
        raise HTTPException(404, "Cart item not found")

    if data.quantity < 1:
        session.delete(item)
        session.commit()
        return {"message": "Item removed"}

    item.quantity = data.quantity
    session.add(item)
    session.commit()
    session.refresh(item)

    return {"message": "Quantity updated", "item": item}

# Remove Cart

@router.delete("/remove/{item_id}")
def remove_item(
    item_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    item = session.get(CartItem, item_id)

    if not item or item.user_id != current_user.id:
        raise HTTPException(404, "Item not found")

    session.delete(item)
    session.commit()

    return {"message": "Item removed from cart"}

# Clear Cart
def clear_cart(session: Session, user_id: int):
    session.execute(delete(CartItem).where(CartItem.user_id == user_id))
    session.commit()


@router.delete("/clear")
def clear_cart_endpoint(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    clear_cart(session, current_user.id)
    return {"message": "Cart cleared"}
