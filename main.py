from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, UpdateRoomRequest, RoomResponse, RoomPageResponse, CalendarEntryResponse,
    # Room blocks
    CreateRoomBlockRequest, UpdateRoomBlockRequest, RoomBlockResponse,
    # Reservations
    CreateReservationRequest, UpdateReservationRequest, ReservationResponse,
    # Payments
    PaymentResponse, CheckoutSessionResponse, MockPaymentRequest,
    # Check-in
    CheckInPassResponse, ValidateQrRequest, ValidateQrResponse,
    # Coupons
    CreateCouponRequest, CouponResponse, ValidateCouponRequest, ValidateCouponResponse,
    # Auth
    Token, UserResponse
)
from api.container import Container
from api.dependencies import get_current_active_user, get_request_context, fake_users_db, get_user
from api.middleware import AuditLogMiddleware, TenantMiddleware
from application.availability import AvailabilityService
from application.checkin import CheckInService
from application.payments import PaymentService
from application.reservations import ReservationService
from application.room_blocks import RoomBlockService
from application.rooms import RoomCatalogService, require_admin
from domain.auth import User
from domain.entities import Reservation, Room, RoomBlock, Payment
from domain.enums import RoomType, SortBy, SortOrder
from domain.exceptions import (
    DomainError, ValidationError, ConflictError, NotFoundError, ForbiddenError
)
from domain.value_objects import RequestContext, RoomSearchQuery
from infrastructure.config import get_settings
from infrastructure.coupons import Coupon, InMemoryCouponResolver
from infrastructure.logging_config import configure_logging
from infrastructure.security import verify_password, create_access_token

settings = get_settings()
configure_logging(settings)
logger = structlog.get_logger(__name__)

container = Container(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await container.start()
    logger.info("application_started")
    yield
    await container.stop()
    logger.info("application_stopped")


app = FastAPI(
    title="Hotel Reservation API",
    description="Room inventory, availability and reservation engine",
    version="2.0.0",
    lifespan=lifespan
)
app.add_middleware(TenantMiddleware)
app.add_middleware(AuditLogMiddleware)

_ERROR_STATUS = {
    ValidationError: 400,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 409,
}


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)),
        500
    )
    if status_code == 500:
        logger.error("unhandled_domain_error", error=exc.message, path=request.url.path)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# Dependency injection
def get_container() -> Container:
    return container

def get_room_service(c: Container = Depends(get_container)) -> RoomCatalogService:
    return c.rooms

def get_availability_service(c: Container = Depends(get_container)) -> AvailabilityService:
    return c.availability

def get_room_block_service(c: Container = Depends(get_container)) -> RoomBlockService:
    return c.room_blocks

def get_reservation_service(c: Container = Depends(get_container)) -> ReservationService:
    return c.reservations

def get_payment_service(c: Container = Depends(get_container)) -> PaymentService:
    return c.payments

def get_checkin_service(c: Container = Depends(get_container)) -> CheckInService:
    return c.checkin

def get_coupon_resolver(c: Container = Depends(get_container)) -> InMemoryCouponResolver:
    return c.coupons

# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check(c: Container = Depends(get_container)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "message": "API is running",
        "cache": "redis" if c.settings.REDIS_URL else "memory",
        "pending_notifications": c.notifier.pending,
    }

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    service: RoomCatalogService = Depends(get_room_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Add a room to the catalog (admin)"""
    room = await service.create_room(ctx, **request.model_dump())
    return _room_to_response(room)

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def list_rooms(
    service: RoomCatalogService = Depends(get_room_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """List bookable rooms"""
    rooms = await service.list_rooms(ctx)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/search", response_model=RoomPageResponse, tags=["Rooms"])
async def search_rooms(
    search: Optional[str] = None,
    type: Optional[RoomType] = None,
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    amenities: List[str] = Query([]),
    min_occupancy: Optional[int] = Query(None, ge=1),
    max_occupancy: Optional[int] = Query(None, ge=1),
    is_available: Optional[bool] = None,
    sort_by: SortBy = SortBy.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    service: RoomCatalogService = Depends(get_room_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Search rooms with filters, sorting and pagination"""
    query = RoomSearchQuery(
        search=search,
        type=type,
        min_price=min_price,
        max_price=max_price,
        amenities=amenities,
        min_occupancy=min_occupancy,
        max_occupancy=max_occupancy,
        is_available=is_available,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
        check_in=check_in,
        check_out=check_out
    )
    result = await service.search_rooms(ctx, query)
    return RoomPageResponse(
        data=[_room_to_response(r) for r in result.data],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages
    )

@app.get("/api/rooms/availability", response_model=List[RoomResponse], tags=["Rooms"])
async def check_availability(
    check_in: date,
    check_out: date,
    type: Optional[RoomType] = None,
    service: AvailabilityService = Depends(get_availability_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Rooms free for [check_in, check_out)"""
    if check_out <= check_in:
        raise HTTPException(status_code=400, detail="Check-out must be after check-in")
    rooms = await service.check_availability(ctx, check_in, check_out, type)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/calendar", response_model=List[CalendarEntryResponse], tags=["Rooms"])
async def availability_calendar(
    start_date: date,
    end_date: date,
    room_id: Optional[UUID] = None,
    service: AvailabilityService = Depends(get_availability_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Per-room, per-day occupancy for [start_date, end_date]"""
    entries = await service.get_availability_calendar(ctx, start_date, end_date, room_id)
    return [
        CalendarEntryResponse(
            room_id=e.room_id,
            room_number=e.room_number,
            date=e.date,
            status=e.status.value,
            reservation_id=e.reservation_id
        )
        for e in entries
    ]

@app.get("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def get_room(
    room_id: UUID,
    service: RoomCatalogService = Depends(get_room_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Get room by ID"""
    return _room_to_response(await service.get_room(ctx, room_id))

@app.patch("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def update_room(
    room_id: UUID,
    request: UpdateRoomRequest,
    service: RoomCatalogService = Depends(get_room_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Update room (admin)"""
    room = await service.update_room(ctx, room_id, **request.model_dump(exclude_unset=True))
    return _room_to_response(room)

@app.delete("/api/rooms/{room_id}", status_code=204, tags=["Rooms"])
async def remove_room(
    room_id: UUID,
    service: RoomCatalogService = Depends(get_room_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Remove room (admin)"""
    await service.remove_room(ctx, room_id)

# ============================================================================
# ROOM BLOCK ENDPOINTS
# ============================================================================

@app.post("/api/room-blocks", response_model=RoomBlockResponse, status_code=201, tags=["Room Blocks"])
async def create_room_block(
    request: CreateRoomBlockRequest,
    service: RoomBlockService = Depends(get_room_block_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Block a room for maintenance or an event (admin)"""
    block = await service.create_block(
        ctx,
        room_id=request.room_id,
        start_date=request.start_date,
        end_date=request.end_date,
        type=request.type,
        reason=request.reason
    )
    return _block_to_response(block)

@app.get("/api/room-blocks", response_model=List[RoomBlockResponse], tags=["Room Blocks"])
async def list_room_blocks(
    room_id: Optional[UUID] = None,
    service: RoomBlockService = Depends(get_room_block_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """List room blocks (admin)"""
    require_admin(ctx, "list room blocks")
    blocks = await service.find_all(ctx, room_id)
    return [_block_to_response(b) for b in blocks]

@app.get("/api/room-blocks/{block_id}", response_model=RoomBlockResponse, tags=["Room Blocks"])
async def get_room_block(
    block_id: UUID,
    service: RoomBlockService = Depends(get_room_block_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Get room block by ID (admin)"""
    require_admin(ctx, "view room blocks")
    return _block_to_response(await service.find_one(ctx, block_id))

@app.patch("/api/room-blocks/{block_id}", response_model=RoomBlockResponse, tags=["Room Blocks"])
async def update_room_block(
    block_id: UUID,
    request: UpdateRoomBlockRequest,
    service: RoomBlockService = Depends(get_room_block_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Update room block (admin)"""
    block = await service.update_block(ctx, block_id, **request.model_dump(exclude_unset=True))
    return _block_to_response(block)

@app.delete("/api/room-blocks/{block_id}", status_code=204, tags=["Room Blocks"])
async def remove_room_block(
    block_id: UUID,
    service: RoomBlockService = Depends(get_room_block_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Remove room block (admin)"""
    await service.remove_block(ctx, block_id)

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Create new reservation"""
    reservation = await service.create_reservation(
        ctx,
        room_id=request.room_id,
        check_in=request.check_in,
        check_out=request.check_out,
        guest_notes=request.guest_notes,
        coupon_code=request.coupon_code
    )
    return _reservation_to_response(reservation)

@app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def get_all_reservations(
    service: ReservationService = Depends(get_reservation_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """All reservations (admin) or the caller's own"""
    reservations = await service.find_all(ctx)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Get reservation by ID"""
    return _reservation_to_response(await service.find_one(ctx, reservation_id))

@app.patch("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def update_reservation(
    reservation_id: UUID,
    request: UpdateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Update notes, or status (admin)"""
    reservation = await service.update_reservation(
        ctx,
        reservation_id,
        status=request.status,
        guest_notes=request.guest_notes
    )
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/cancel", response_model=ReservationResponse, tags=["Reservations"])
async def cancel_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Cancel reservation"""
    return _reservation_to_response(await service.cancel_reservation(ctx, reservation_id))

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/payments/intent/{reservation_id}", response_model=PaymentResponse, tags=["Payments"])
async def create_payment_intent(
    reservation_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Create (or return) the payment of a pending reservation"""
    return _payment_to_response(await service.create_intent(reservation_id, ctx))

@app.post("/api/payments/checkout/{reservation_id}", response_model=CheckoutSessionResponse, tags=["Payments"])
async def create_checkout_session(
    reservation_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Open a mock checkout session"""
    payment, url = await service.create_checkout_session(reservation_id, ctx)
    return CheckoutSessionResponse(
        session_id=payment.session_id,
        url=url,
        payment=_payment_to_response(payment)
    )

@app.post("/api/payments/mock/{reservation_id}", response_model=PaymentResponse, tags=["Payments"])
async def process_mock_payment(
    reservation_id: UUID,
    request: MockPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Simulate a successful payment for a checkout session"""
    payment = await service.process_mock_payment(reservation_id, request.session_id)
    return _payment_to_response(payment)

@app.get("/api/payments", response_model=List[PaymentResponse], tags=["Payments"])
async def list_payments(
    service: PaymentService = Depends(get_payment_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """All payments (admin) or the caller's own"""
    return [_payment_to_response(p) for p in await service.find_all(ctx)]

@app.get("/api/payments/{payment_id}", response_model=PaymentResponse, tags=["Payments"])
async def get_payment(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Get payment by ID"""
    return _payment_to_response(await service.find_one(ctx, payment_id))

# ============================================================================
# CHECK-IN ENDPOINTS
# ============================================================================

@app.post("/api/checkin/{reservation_id}/qrcode", response_model=CheckInPassResponse, tags=["Check-in"])
async def generate_qr_code(
    reservation_id: UUID,
    service: CheckInService = Depends(get_checkin_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Issue the check-in token of a confirmed reservation"""
    check_in_pass = await service.generate_qr_token(ctx, reservation_id)
    return CheckInPassResponse(**check_in_pass.model_dump())

@app.post("/api/checkin/validate", response_model=ValidateQrResponse, tags=["Check-in"])
async def validate_qr_code(
    request: ValidateQrRequest,
    service: CheckInService = Depends(get_checkin_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Validate a presented check-in token"""
    result = await service.validate_qr_token(request.token)
    return ValidateQrResponse(
        valid=result.valid,
        message=result.message,
        reservation=_reservation_to_response(result.reservation) if result.reservation else None
    )

@app.post("/api/checkin/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Check-in"])
async def perform_check_in(
    reservation_id: UUID,
    service: CheckInService = Depends(get_checkin_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Record guest arrival (admin)"""
    return _reservation_to_response(await service.perform_check_in(ctx, reservation_id))

@app.post("/api/checkin/{reservation_id}/check-out", response_model=ReservationResponse, tags=["Check-in"])
async def perform_check_out(
    reservation_id: UUID,
    service: CheckInService = Depends(get_checkin_service),
    ctx: RequestContext = Depends(get_request_context)
):
    """Record guest departure and complete the stay (admin)"""
    return _reservation_to_response(await service.perform_check_out(ctx, reservation_id))

# ============================================================================
# COUPON ENDPOINTS
# ============================================================================

@app.post("/api/coupons", response_model=CouponResponse, status_code=201, tags=["Coupons"])
async def create_coupon(
    request: CreateCouponRequest,
    coupons: InMemoryCouponResolver = Depends(get_coupon_resolver),
    ctx: RequestContext = Depends(get_request_context)
):
    """Create a discount code (admin)"""
    require_admin(ctx, "create coupons")
    coupon = await coupons.create(Coupon(**request.model_dump()))
    return CouponResponse(**coupon.model_dump(mode="json"))

@app.post("/api/coupons/validate", response_model=ValidateCouponResponse, tags=["Coupons"])
async def validate_coupon(
    request: ValidateCouponRequest,
    coupons: InMemoryCouponResolver = Depends(get_coupon_resolver),
    current_user: User = Depends(get_current_active_user)
):
    """Preview the discount a code grants on an amount"""
    result = await coupons.validate(request.code, request.amount)
    return ValidateCouponResponse(
        valid=result.valid,
        discount=result.discount,
        final_amount=result.final_amount,
        error=result.error
    )

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room: Room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        tenant_id=room.tenant_id,
        number=room.number,
        type=room.type.value,
        price_per_night=room.price_per_night,
        max_occupancy=room.max_occupancy,
        is_available=room.is_available,
        rating_average=room.rating_average,
        amenities=room.amenities,
        description=room.description,
        image_url=room.image_url,
        created_at=room.created_at,
        updated_at=room.updated_at
    )

def _block_to_response(block: RoomBlock) -> RoomBlockResponse:
    """Convert RoomBlock entity to RoomBlockResponse"""
    return RoomBlockResponse(
        block_id=block.block_id,
        tenant_id=block.tenant_id,
        room_id=block.room_id,
        start_date=block.start_date,
        end_date=block.end_date,
        type=block.type.value,
        reason=block.reason,
        is_active=block.is_active,
        created_at=block.created_at,
        updated_at=block.updated_at
    )

def _reservation_to_response(reservation: Reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        tenant_id=reservation.tenant_id,
        room_id=reservation.room_id,
        user_id=reservation.user_id,
        check_in=reservation.check_in_date,
        check_out=reservation.check_out_date,
        nights=reservation.get_nights(),
        total_price=reservation.total_price,
        discount_amount=reservation.discount_amount,
        coupon_code=reservation.coupon_code,
        guest_notes=reservation.guest_notes,
        status=reservation.status.value,
        checked_in_at=reservation.checked_in_at,
        checked_out_at=reservation.checked_out_at,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        version=reservation.version
    )

def _payment_to_response(payment: Payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        reservation_id=payment.reservation_id,
        amount=payment.amount,
        status=payment.status.value,
        payment_intent_id=payment.payment_intent_id,
        session_id=payment.session_id,
        created_at=payment.created_at,
        updated_at=payment.updated_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
