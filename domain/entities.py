"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field, validator
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Optional, List, Dict, Set
from decimal import Decimal
import secrets

from domain.enums import RoomType, ReservationStatus, BlockType, PaymentStatus
from domain.exceptions import ConflictError, ValidationError
from domain.value_objects import DateRange, normalize_date, ranges_overlap


# pending -> confirmed -> completed, cancelled from pending or confirmed
ALLOWED_TRANSITIONS: Dict[ReservationStatus, Set[ReservationStatus]] = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {ReservationStatus.COMPLETED, ReservationStatus.CANCELLED},
    ReservationStatus.COMPLETED: set(),
    ReservationStatus.CANCELLED: set(),
}


class Room(BaseModel):
    """Room Aggregate Root Entity"""

    # Identity
    room_id: UUID = Field(default_factory=uuid4)
    tenant_id: Optional[str] = None
    number: str = Field(min_length=1)

    # Catalog data
    type: RoomType
    price_per_night: Decimal = Field(gt=0)
    max_occupancy: int = Field(ge=1, default=1)
    is_available: bool = True
    rating_average: Decimal = Field(ge=0, le=5, default=Decimal("0"))
    amenities: List[str] = []
    description: Optional[str] = None
    image_url: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @validator('amenities')
    def unique_amenities(cls, v):
        seen: Dict[str, None] = {}
        for amenity in v:
            seen.setdefault(amenity.strip(), None)
        return [a for a in seen if a]

    def has_amenities(self, wanted: List[str]) -> bool:
        """True when every wanted amenity is offered (case-insensitive)"""
        offered = {a.lower() for a in self.amenities}
        return all(a.lower() in offered for a in wanted)

    def matches_text(self, text: str) -> bool:
        needle = text.lower()
        return needle in self.number.lower() or needle in (self.description or "").lower()

    def price_for(self, date_range: DateRange) -> Decimal:
        """Pre-discount subtotal for a stay"""
        return self.price_per_night * date_range.nights()


class Reservation(BaseModel):
    """Reservation Aggregate Root Entity

    Status moves pending -> confirmed -> completed; cancelled is reachable
    from pending or confirmed. Nothing ever returns to pending.
    """

    # Identity
    reservation_id: UUID = Field(default_factory=uuid4)
    tenant_id: Optional[str] = None

    # References to other aggregates
    room_id: UUID
    user_id: UUID

    # Stay and price
    date_range: DateRange
    total_price: Decimal = Field(ge=0)
    discount_amount: Decimal = Field(ge=0, default=Decimal("0"))
    coupon_code: Optional[str] = None
    guest_notes: Optional[str] = None

    # Status
    status: ReservationStatus = ReservationStatus.PENDING

    # Check-in
    qr_token: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        room: Room,
        user_id: UUID,
        date_range: DateRange,
        tenant_id: Optional[str] = None,
        discount_amount: Decimal = Decimal("0"),
        coupon_code: Optional[str] = None,
        guest_notes: Optional[str] = None
    ) -> "Reservation":
        """Create a pending reservation priced from the room rate"""
        subtotal = room.price_for(date_range)

        if discount_amount < 0 or discount_amount > subtotal:
            raise ValidationError("Discount cannot exceed the stay subtotal")

        return Reservation(
            tenant_id=tenant_id or room.tenant_id,
            room_id=room.room_id,
            user_id=user_id,
            date_range=date_range,
            total_price=subtotal - discount_amount,
            discount_amount=discount_amount,
            coupon_code=coupon_code if discount_amount > 0 else None,
            guest_notes=guest_notes,
            status=ReservationStatus.PENDING
        )

    # ==================== STATE TRANSITION METHODS ====================
    def can_transition_to(self, new_status: ReservationStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, new_status: ReservationStatus) -> None:
        """Move to a new status, enforcing the state machine"""
        if new_status == self.status:
            return
        if not self.can_transition_to(new_status):
            raise ConflictError(
                f"Cannot move reservation from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
        self._touch()

    def confirm(self) -> None:
        """Confirm reservation after payment"""
        if self.status != ReservationStatus.PENDING:
            raise ConflictError(
                f"Cannot confirm reservation with status {self.status.value}"
            )
        self.transition_to(ReservationStatus.CONFIRMED)

    def cancel(self) -> None:
        """Cancel reservation (no refund logic)"""
        self.transition_to(ReservationStatus.CANCELLED)

    def check_in(self) -> None:
        """Record guest arrival"""
        if self.status != ReservationStatus.CONFIRMED:
            raise ConflictError("Reservation must be confirmed to check in")
        if self.checked_in_at:
            raise ConflictError("Guest already checked in")
        self.checked_in_at = datetime.utcnow()
        self._touch()

    def check_out(self) -> None:
        """Record guest departure and complete the stay"""
        if not self.checked_in_at:
            raise ConflictError("Guest has not checked in")
        if self.checked_out_at:
            raise ConflictError("Guest already checked out")
        if not self.can_transition_to(ReservationStatus.COMPLETED):
            raise ConflictError(
                f"Cannot complete reservation with status {self.status.value}"
            )
        self.checked_out_at = datetime.utcnow()
        self.transition_to(ReservationStatus.COMPLETED)

    def assign_qr_token(self) -> str:
        """Assign the check-in token lazily; later calls reuse it"""
        if not self.qr_token:
            self.qr_token = f"qr_{secrets.token_urlsafe(16)}"
            self._touch()
        return self.qr_token

    def update_notes(self, guest_notes: Optional[str]) -> None:
        self.guest_notes = guest_notes
        self._touch()

    # ==================== QUERY METHODS ====================
    @property
    def check_in_date(self) -> date:
        return self.date_range.check_in

    @property
    def check_out_date(self) -> date:
        return self.date_range.check_out

    @property
    def is_active(self) -> bool:
        """Non-cancelled reservations hold their room"""
        return self.status != ReservationStatus.CANCELLED

    def belongs_to(self, user_id: Optional[UUID]) -> bool:
        return user_id is not None and self.user_id == user_id

    def overlaps(self, start: date, end: date) -> bool:
        return self.is_active and self.date_range.overlaps(start, end)

    def covers(self, day: date) -> bool:
        return self.is_active and self.date_range.covers(day)

    def get_nights(self) -> int:
        return self.date_range.nights()

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()
        self.version += 1


class RoomBlock(BaseModel):
    """Room Block Entity - a date range withheld from booking"""

    block_id: UUID = Field(default_factory=uuid4)
    tenant_id: Optional[str] = None
    room_id: UUID

    start_date: date
    end_date: date
    type: BlockType = BlockType.MAINTENANCE
    reason: Optional[str] = None
    is_active: bool = True

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @validator('start_date', 'end_date', pre=True)
    def strip_time(cls, v):
        return normalize_date(v)

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v

    def overlaps(self, start: date, end: date) -> bool:
        return self.is_active and ranges_overlap(self.start_date, self.end_date, start, end)

    def covers(self, day: date) -> bool:
        return self.is_active and self.start_date <= day < self.end_date

    def reschedule(self, start_date: date, end_date: date) -> None:
        if start_date >= end_date:
            raise ValidationError("Start date must be before end date")
        self.start_date = start_date
        self.end_date = end_date
        self.updated_at = datetime.utcnow()


class Payment(BaseModel):
    """Payment Entity - one per reservation"""

    payment_id: UUID = Field(default_factory=uuid4)
    reservation_id: UUID
    amount: Decimal = Field(ge=0)
    status: PaymentStatus = PaymentStatus.PENDING
    payment_intent_id: str = Field(default_factory=lambda: f"mock_pi_{secrets.token_hex(8)}")
    session_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    def open_session(self) -> str:
        if not self.session_id:
            self.session_id = f"mock_session_{secrets.token_hex(8)}"
            self._touch()
        return self.session_id

    def complete(self) -> None:
        if self.status not in (PaymentStatus.PENDING, PaymentStatus.COMPLETED):
            raise ConflictError(f"Cannot settle payment with status {self.status.value}")
        self.status = PaymentStatus.COMPLETED
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.utcnow()
        self.version += 1


class RoomPage(BaseModel):
    """One page of room search results"""
    data: List[Room]
    total: int
    page: int
    page_size: int
    total_pages: int
