"""In-memory coupon resolver"""
from datetime import datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field, validator

from domain.enums import CouponType
from domain.exceptions import ConflictError, NotFoundError, ValidationError
from domain.ports import CouponResolver
from domain.value_objects import CouponValidation

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


class Coupon(BaseModel):
    """Discount code"""
    coupon_id: UUID = Field(default_factory=uuid4)
    code: str = Field(min_length=1)
    type: CouponType
    value: Decimal = Field(ge=0)
    valid_from: datetime
    valid_until: datetime
    max_uses: int = Field(ge=0, default=0)  # 0 = unlimited
    current_uses: int = Field(ge=0, default=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    is_active: bool = True

    @validator('code')
    def upper_code(cls, v):
        return v.strip().upper()

    @validator('valid_from', 'valid_until')
    def naive_utc(cls, v):
        # stored as naive UTC, compared against datetime.utcnow()
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    def discount_for(self, subtotal: Decimal) -> Decimal:
        if self.type == CouponType.PERCENTAGE:
            discount = (subtotal * self.value / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
        else:
            discount = self.value
        return min(discount, subtotal)


class InMemoryCouponResolver(CouponResolver):
    """Coupon catalog kept in memory"""

    def __init__(self):
        self._coupons: Dict[UUID, Coupon] = {}

    async def create(self, coupon: Coupon) -> Coupon:
        if coupon.valid_until <= coupon.valid_from:
            raise ValidationError("Coupon end date must be after its start date")
        if coupon.type == CouponType.PERCENTAGE and coupon.value > 100:
            raise ValidationError("Percentage value must be between 0 and 100")
        if coupon.type == CouponType.FIXED and coupon.value <= 0:
            raise ValidationError("Fixed value must be greater than zero")
        if self._by_code(coupon.code):
            raise ConflictError("Coupon code already exists")
        self._coupons[coupon.coupon_id] = coupon
        return coupon

    async def find_by_code(self, code: str) -> Coupon:
        coupon = self._by_code(code)
        if coupon is None:
            raise NotFoundError("Coupon not found")
        return coupon

    async def find_coupon_id(self, code: str) -> Optional[UUID]:
        coupon = self._by_code(code)
        return coupon.coupon_id if coupon else None

    async def validate(self, code: str, subtotal: Decimal) -> CouponValidation:
        coupon = self._by_code(code)
        if coupon is None:
            return CouponValidation(valid=False, error="Coupon not found")

        if not coupon.is_active:
            return CouponValidation(valid=False, error="Coupon is not active")

        now = datetime.utcnow()
        if now < coupon.valid_from:
            return CouponValidation(valid=False, error="Coupon is not valid yet")
        # valid through the end of its last day
        if now > datetime.combine(coupon.valid_until.date(), time.max):
            return CouponValidation(valid=False, error="Coupon expired")

        if coupon.max_uses > 0 and coupon.current_uses >= coupon.max_uses:
            return CouponValidation(valid=False, error="Coupon usage limit reached")

        if coupon.min_purchase_amount and subtotal < coupon.min_purchase_amount:
            return CouponValidation(
                valid=False,
                error=f"Minimum purchase amount: {coupon.min_purchase_amount:.2f}"
            )

        discount = coupon.discount_for(subtotal)
        return CouponValidation(
            valid=True,
            coupon_id=coupon.coupon_id,
            discount=discount,
            final_amount=subtotal - discount
        )

    async def commit_usage(self, coupon_id: UUID) -> None:
        coupon = self._coupons.get(coupon_id)
        if coupon is None:
            raise NotFoundError("Coupon not found")
        coupon.current_uses += 1
        logger.info("coupon_usage_committed", coupon_id=str(coupon_id), uses=coupon.current_uses)

    def _by_code(self, code: str) -> Optional[Coupon]:
        wanted = code.strip().upper()
        for coupon in self._coupons.values():
            if coupon.code == wanted:
                return coupon
        return None
