"""Check-in / check-out use cases"""
import json
from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from application.reservations import notify_safely, reservation_payload
from application.rooms import require_admin
from domain.entities import Reservation
from domain.enums import NotificationEvent, ReservationStatus
from domain.exceptions import ConflictError, ForbiddenError, NotFoundError
from domain.ports import NotificationDispatcher
from domain.repositories import ReservationRepository
from domain.value_objects import RequestContext

logger = structlog.get_logger(__name__)


class CheckInPass(BaseModel):
    """Token a guest presents at the front desk, plus the QR payload encoding it"""
    reservation_id: UUID
    token: str
    payload: str


class QrValidation(BaseModel):
    valid: bool
    reservation: Optional[Reservation] = None
    message: Optional[str] = None


class CheckInService:
    """Service for arrival and departure of guests"""

    def __init__(self, repository: ReservationRepository, notifier: NotificationDispatcher):
        self.repository = repository
        self.notifier = notifier

    async def _load(self, reservation_id: UUID) -> Reservation:
        reservation = await self.repository.find_by_id(reservation_id)
        if not reservation:
            raise NotFoundError(f"Reservation with ID {reservation_id} not found")
        return reservation

    async def generate_qr_token(self, ctx: RequestContext, reservation_id: UUID) -> CheckInPass:
        """Issue (or reissue) the check-in token of a confirmed reservation"""
        reservation = await self._load(reservation_id)
        if not ctx.is_admin and (
            not ctx.matches_tenant(reservation.tenant_id) or not reservation.belongs_to(ctx.user_id)
        ):
            logger.warning("qr_access_denied", reservation_id=str(reservation_id), user_id=str(ctx.user_id))
            raise ForbiddenError("You do not have access to this reservation")
        if reservation.status != ReservationStatus.CONFIRMED:
            raise ConflictError("Reservation must be confirmed to generate a check-in code")

        if not reservation.qr_token:
            expected_version = reservation.version
            reservation.assign_qr_token()
            await self.repository.update(reservation, expected_version)
            logger.info("qr_token_assigned", reservation_id=str(reservation_id))

        payload = json.dumps({
            "reservationId": str(reservation.reservation_id),
            "token": reservation.qr_token,
            "checkIn": reservation.check_in_date.isoformat(),
            "checkOut": reservation.check_out_date.isoformat(),
        })
        return CheckInPass(
            reservation_id=reservation.reservation_id,
            token=reservation.qr_token,
            payload=payload
        )

    async def validate_qr_token(self, token: str, today: Optional[date] = None) -> QrValidation:
        """Front-desk check of a presented token; never raises for bad tokens"""
        today = today or date.today()
        reservation = await self.repository.find_by_qr_token(token)

        if not reservation:
            return QrValidation(valid=False, message="Invalid code or reservation not found")
        if reservation.status != ReservationStatus.CONFIRMED:
            return QrValidation(valid=False, message="Reservation is not confirmed")
        if today < reservation.check_in_date:
            return QrValidation(valid=False, message="Check-in is not open yet")
        if today > reservation.check_out_date:
            return QrValidation(valid=False, message="Check-in period has expired")

        return QrValidation(valid=True, reservation=reservation)

    async def perform_check_in(self, ctx: RequestContext, reservation_id: UUID) -> Reservation:
        require_admin(ctx, "perform check-in")
        reservation = await self._load(reservation_id)

        expected_version = reservation.version
        reservation.check_in()
        await self.repository.update(reservation, expected_version)

        logger.info("guest_checked_in", reservation_id=str(reservation_id))
        notify_safely(self.notifier, NotificationEvent.GUEST_CHECKED_IN, reservation_payload(reservation))
        return reservation

    async def perform_check_out(self, ctx: RequestContext, reservation_id: UUID) -> Reservation:
        require_admin(ctx, "perform check-out")
        reservation = await self._load(reservation_id)

        expected_version = reservation.version
        reservation.check_out()
        await self.repository.update(reservation, expected_version)

        logger.info("guest_checked_out", reservation_id=str(reservation_id))
        notify_safely(self.notifier, NotificationEvent.GUEST_CHECKED_OUT, reservation_payload(reservation))
        return reservation
