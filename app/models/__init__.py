from app.models.user import User
from app.models.product import Product
from app.models.cart import CartItem
from app.models.coupon import Coupon, AppliedCoupon
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.order_event import OrderEvent
from app.models.checkout_attempt import CheckoutAttempt

# add ALL models here
