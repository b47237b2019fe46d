"""Reservation Lifecycle use cases"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

import structlog

from application.availability import AvailabilityService
from application.cache import ReadThroughCache
from application.locks import RoomLockRegistry
from application.rooms import require_admin
from domain.entities import Reservation
from domain.enums import NotificationEvent, ReservationStatus
from domain.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from domain.ports import CouponResolver, NotificationDispatcher, ReservationUpdater
from domain.repositories import ReservationRepository, RoomRepository
from domain.value_objects import DateRange, RequestContext, normalize_date

logger = structlog.get_logger(__name__)


def notify_safely(
    notifier: NotificationDispatcher,
    event: NotificationEvent,
    payload: Dict[str, Any]
) -> None:
    """Hand a message to the dispatcher; failures are logged and dropped"""
    try:
        notifier.notify(event, payload)
    except Exception as e:
        logger.warning("notification_dispatch_failed", notification_event=event.value, error=str(e))


def reservation_payload(reservation: Reservation) -> Dict[str, Any]:
    return {
        "reservation_id": str(reservation.reservation_id),
        "user_id": str(reservation.user_id),
        "room_id": str(reservation.room_id),
        "status": reservation.status.value,
        "check_in": reservation.check_in_date.isoformat(),
        "check_out": reservation.check_out_date.isoformat(),
    }


class ReservationService(ReservationUpdater):
    """Service for Reservation business use cases"""

    def __init__(
        self,
        repository: ReservationRepository,
        room_repo: RoomRepository,
        availability: AvailabilityService,
        coupon_resolver: CouponResolver,
        notifier: NotificationDispatcher,
        locks: RoomLockRegistry,
        cache: ReadThroughCache
    ):
        self.repository = repository
        self.room_repo = room_repo
        self.availability = availability
        self.coupon_resolver = coupon_resolver
        self.notifier = notifier
        self.locks = locks
        self.cache = cache

    async def create_reservation(
        self,
        ctx: RequestContext,
        room_id: UUID,
        check_in: Union[date, datetime, str],
        check_out: Union[date, datetime, str],
        guest_notes: Optional[str] = None,
        coupon_code: Optional[str] = None,
        user_id: Optional[UUID] = None
    ) -> Reservation:
        """Book a room for [check_in, check_out) with status pending.

        Availability is re-read from storage (never the cache) while the
        room lock is held, and the insert happens under the same lock.
        """
        check_in = normalize_date(check_in)
        check_out = normalize_date(check_out)
        if check_in < date.today():
            raise ValidationError("Check-in date cannot be in the past")
        if check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")

        guest_id = user_id or ctx.user_id
        if guest_id is None:
            raise ValidationError("A reservation needs a guest")

        date_range = DateRange(check_in=check_in, check_out=check_out)

        async with self.locks.lock_for(room_id):
            available = await self.availability.check_availability(
                ctx, check_in, check_out, use_cache=False
            )
            room = next((r for r in available if r.room_id == room_id), None)
            if room is None:
                raise ConflictError("Room is not available for the selected dates")

            discount = Decimal("0")
            applied_code = None
            if coupon_code:
                discount = await self._coupon_discount(coupon_code, room.price_for(date_range))
                applied_code = coupon_code if discount > 0 else None

            reservation = Reservation.create(
                room=room,
                user_id=guest_id,
                date_range=date_range,
                tenant_id=ctx.tenant_id,
                discount_amount=discount,
                coupon_code=applied_code,
                guest_notes=guest_notes
            )
            await self.repository.save(reservation)

        await self.cache.invalidate(
            *self.cache.window_keys(reservation.tenant_id, check_in, check_out, room.type)
        )
        logger.info(
            "reservation_created",
            reservation_id=str(reservation.reservation_id),
            room_id=str(room_id),
            user_id=str(guest_id),
            nights=reservation.get_nights(),
            total_price=str(reservation.total_price),
            discount=str(reservation.discount_amount),
        )
        notify_safely(self.notifier, NotificationEvent.RESERVATION_CREATED, {
            **reservation_payload(reservation),
            "total_price": str(reservation.total_price),
        })
        return reservation

    async def _coupon_discount(self, code: str, subtotal: Decimal) -> Decimal:
        """Discount granted by a coupon; zero when invalid or the resolver fails"""
        try:
            result = await self.coupon_resolver.validate(code, subtotal)
        except Exception as e:
            logger.warning("coupon_validation_failed", coupon_code=code, error=str(e))
            return Decimal("0")

        if not result.valid:
            logger.info("coupon_rejected", coupon_code=code, reason=result.error)
            return Decimal("0")
        return min(result.discount, subtotal)

    async def find_all(self, ctx: RequestContext) -> List[Reservation]:
        """Admins see every reservation of the tenant; guests see their own"""
        if ctx.is_admin:
            reservations = await self.repository.find_all(ctx.tenant_id)
        else:
            if ctx.user_id is None:
                return []
            reservations = [
                r for r in await self.repository.find_by_user_id(ctx.user_id)
                if ctx.matches_tenant(r.tenant_id)
            ]
        return sorted(reservations, key=lambda r: r.created_at, reverse=True)

    async def find_one(self, ctx: RequestContext, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if not reservation:
            raise NotFoundError(f"Reservation with ID {reservation_id} not found")

        if not ctx.is_admin:
            if not ctx.matches_tenant(reservation.tenant_id) or not reservation.belongs_to(ctx.user_id):
                logger.warning(
                    "reservation_access_denied",
                    reservation_id=str(reservation_id),
                    user_id=str(ctx.user_id),
                    tenant_id=ctx.tenant_id,
                )
                raise ForbiddenError("You do not have access to this reservation")
        return reservation

    async def update_reservation(
        self,
        ctx: RequestContext,
        reservation_id: UUID,
        status: Optional[ReservationStatus] = None,
        guest_notes: Optional[str] = None
    ) -> Reservation:
        """Patch notes and/or status; status changes are admin-only"""
        if status is not None:
            require_admin(ctx, "change reservation status")

        reservation = await self.find_one(ctx, reservation_id)
        expected_version = reservation.version
        previous_status = reservation.status

        if status is not None:
            reservation.transition_to(status)
        if guest_notes is not None:
            reservation.update_notes(guest_notes)

        if reservation.version == expected_version:
            return reservation

        await self.repository.update(reservation, expected_version)

        if reservation.status != previous_status:
            logger.info(
                "reservation_status_changed",
                reservation_id=str(reservation_id),
                old_status=previous_status.value,
                new_status=reservation.status.value,
            )
            if reservation.status == ReservationStatus.CANCELLED:
                await self._release_window(reservation)
            notify_safely(self.notifier, NotificationEvent.RESERVATION_STATUS_CHANGED, {
                **reservation_payload(reservation),
                "old_status": previous_status.value,
            })
        return reservation

    async def cancel_reservation(self, ctx: RequestContext, reservation_id: UUID) -> Reservation:
        """Owner or admin may cancel; cancelling twice is a no-op"""
        reservation = await self.find_one(ctx, reservation_id)
        if reservation.status == ReservationStatus.CANCELLED:
            return reservation

        expected_version = reservation.version
        reservation.cancel()
        await self.repository.update(reservation, expected_version)
        await self._release_window(reservation)

        logger.info(
            "reservation_cancelled",
            reservation_id=str(reservation_id),
            cancelled_by=str(ctx.user_id),
        )
        notify_safely(self.notifier, NotificationEvent.RESERVATION_CANCELLED, reservation_payload(reservation))
        return reservation

    async def _release_window(self, reservation: Reservation) -> None:
        room = await self.room_repo.find_by_id(reservation.room_id)
        if room is None:
            return
        await self.cache.invalidate(*self.cache.window_keys(
            reservation.tenant_id, reservation.check_in_date, reservation.check_out_date, room.type
        ))

    # ==================== ReservationUpdater ====================
    async def get_reservation(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if not reservation:
            raise NotFoundError(f"Reservation with ID {reservation_id} not found")
        return reservation

    async def confirm_payment(self, reservation_id: UUID) -> Reservation:
        reservation = await self.get_reservation(reservation_id)
        expected_version = reservation.version
        reservation.confirm()
        await self.repository.update(reservation, expected_version)
        logger.info("reservation_confirmed", reservation_id=str(reservation_id))
        return reservation

