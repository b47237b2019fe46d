"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import RoomType, BlockType, ReservationStatus, CouponType, UserRole


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    number: str = Field(min_length=1)
    type: RoomType
    price_per_night: Decimal = Field(gt=0)
    max_occupancy: int = Field(ge=1, default=1)
    is_available: bool = True
    amenities: List[str] = []
    description: Optional[str] = None
    image_url: Optional[str] = None


class UpdateRoomRequest(BaseModel):
    """Update room request DTO"""
    number: Optional[str] = Field(None, min_length=1)
    type: Optional[RoomType] = None
    price_per_night: Optional[Decimal] = Field(None, gt=0)
    max_occupancy: Optional[int] = Field(None, ge=1)
    is_available: Optional[bool] = None
    amenities: Optional[List[str]] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    tenant_id: Optional[str] = None
    number: str
    type: str
    price_per_night: Decimal
    max_occupancy: int
    is_available: bool
    rating_average: Decimal
    amenities: List[str]
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RoomPageResponse(BaseModel):
    """Paginated room search response DTO"""
    data: List[RoomResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CalendarEntryResponse(BaseModel):
    """Calendar cell response DTO"""
    room_id: UUID
    room_number: str
    date: date
    status: str
    reservation_id: Optional[UUID] = None


# ============================================================================
# ROOM BLOCK SCHEMAS
# ============================================================================

class CreateRoomBlockRequest(BaseModel):
    """Create room block request DTO"""
    room_id: UUID
    start_date: date
    end_date: date
    type: BlockType = BlockType.MAINTENANCE
    reason: Optional[str] = None


class UpdateRoomBlockRequest(BaseModel):
    """Update room block request DTO"""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[BlockType] = None
    reason: Optional[str] = None
    is_active: Optional[bool] = None


class RoomBlockResponse(BaseModel):
    """Room block response DTO"""
    block_id: UUID
    tenant_id: Optional[str] = None
    room_id: UUID
    start_date: date
    end_date: date
    type: str
    reason: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    guest_notes: Optional[str] = None
    coupon_code: Optional[str] = None


class UpdateReservationRequest(BaseModel):
    """Update reservation request DTO"""
    status: Optional[ReservationStatus] = None
    guest_notes: Optional[str] = None


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    tenant_id: Optional[str] = None
    room_id: UUID
    user_id: UUID
    check_in: date
    check_out: date
    nights: int
    total_price: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str] = None
    guest_notes: Optional[str] = None
    status: str
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    created_at: datetime
    modified_at: datetime
    version: int


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    reservation_id: UUID
    amount: Decimal
    status: str
    payment_intent_id: str
    session_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CheckoutSessionResponse(BaseModel):
    """Mock checkout session response DTO"""
    session_id: str
    url: str
    payment: PaymentResponse


class MockPaymentRequest(BaseModel):
    """Mock provider callback DTO"""
    session_id: str


# ============================================================================
# CHECK-IN SCHEMAS
# ============================================================================

class CheckInPassResponse(BaseModel):
    """Check-in token response DTO"""
    reservation_id: UUID
    token: str
    payload: str


class ValidateQrRequest(BaseModel):
    """Validate check-in token request DTO"""
    token: str = Field(min_length=1)


class ValidateQrResponse(BaseModel):
    """Validate check-in token response DTO"""
    valid: bool
    message: Optional[str] = None
    reservation: Optional[ReservationResponse] = None


# ============================================================================
# COUPON SCHEMAS
# ============================================================================

class CreateCouponRequest(BaseModel):
    """Create coupon request DTO"""
    code: str = Field(min_length=1)
    type: CouponType
    value: Decimal = Field(ge=0)
    valid_from: datetime
    valid_until: datetime
    max_uses: int = Field(ge=0, default=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    is_active: bool = True


class CouponResponse(BaseModel):
    """Coupon response DTO"""
    coupon_id: UUID
    code: str
    type: str
    value: Decimal
    valid_from: datetime
    valid_until: datetime
    max_uses: int
    current_uses: int
    min_purchase_amount: Optional[Decimal] = None
    is_active: bool


class ValidateCouponRequest(BaseModel):
    """Validate coupon request DTO"""
    code: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)


class ValidateCouponResponse(BaseModel):
    """Validate coupon response DTO"""
    valid: bool
    discount: Decimal
    final_amount: Optional[Decimal] = None
    error: Optional[str] = None


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool
