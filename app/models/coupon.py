from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime


class Coupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # null means platform-wide
    seller_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    code: str = Field(index=True, unique=True)  # case-sensitive
    discount_percent: float
    expires_at: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = Field(default=0)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_platform_wide(self) -> bool:
        return self.seller_id is None


class AppliedCoupon(SQLModel, table=True):
    """Coupon a buyer has applied at checkout, kept until replaced or the checkout commits."""
    __tablename__ = "applied_coupon"

    buyer_id: int = Field(foreign_key="user.id", primary_key=True)
    coupon_id: int = Field(foreign_key="coupon.id")
    applied_at: datetime = Field(default_factory=datetime.utcnow)
