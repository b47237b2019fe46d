"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID
from typing import Optional, List, Iterator, Union

from domain.enums import UserRole, CalendarStatus, RoomType, SortBy, SortOrder


def normalize_date(value: Union[date, datetime, str]) -> date:
    """Strip time-of-day, keeping calendar-day precision"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)[:10]).date()


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open interval test: touching endpoints do not overlap"""
    return a_start < b_end and b_start < a_end


class DateRange(BaseModel):
    """Value Object for a half-open [check_in, check_out) stay"""
    check_in: date
    check_out: date

    @validator('check_in', 'check_out', pre=True)
    def strip_time(cls, v):
        return normalize_date(v)

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    def nights(self) -> int:
        """Calculate number of nights (at least one)"""
        return max((self.check_out - self.check_in).days, 1)

    def overlaps(self, start: date, end: date) -> bool:
        return ranges_overlap(self.check_in, self.check_out, start, end)

    def covers(self, day: date) -> bool:
        return self.check_in <= day < self.check_out

    class Config:
        frozen = True


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every date in [start, end], inclusive"""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class RequestContext(BaseModel):
    """Who is calling and under which tenant.

    Built once per request by the API layer and passed explicitly into
    every service call. ``tenant_id`` is None when no hotel was resolved,
    in which case no tenant filter applies.
    """
    tenant_id: Optional[str] = None
    user_id: Optional[UUID] = None
    role: UserRole = UserRole.GUEST

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def matches_tenant(self, tenant_id: Optional[str]) -> bool:
        return self.tenant_id is None or self.tenant_id == tenant_id

    class Config:
        frozen = True


class CouponValidation(BaseModel):
    """Answer from the coupon resolver for a (code, subtotal) pair"""
    valid: bool
    coupon_id: Optional[UUID] = None
    discount: Decimal = Decimal("0")
    final_amount: Optional[Decimal] = None
    error: Optional[str] = None


class CalendarEntry(BaseModel):
    """One (room, date) cell of the occupancy calendar"""
    room_id: UUID
    room_number: str
    date: date
    status: CalendarStatus
    reservation_id: Optional[UUID] = None


class RoomSearchQuery(BaseModel):
    """Parameters of a paginated room search"""
    search: Optional[str] = None
    type: Optional[RoomType] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    amenities: List[str] = []
    min_occupancy: Optional[int] = Field(None, ge=1)
    max_occupancy: Optional[int] = Field(None, ge=1)
    is_available: Optional[bool] = None
    sort_by: SortBy = SortBy.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = Field(1, ge=1)
    page_size: int = Field(12, ge=1, le=100)
    check_in: Optional[date] = None
    check_out: Optional[date] = None

    def cache_fragment(self) -> str:
        return self.model_dump_json(exclude_defaults=False)
