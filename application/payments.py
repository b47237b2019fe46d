"""Payment use cases (mock provider)"""
import asyncio
from typing import List, Optional, Tuple
from uuid import UUID

import structlog

from application.reservations import notify_safely, reservation_payload
from domain.entities import Payment, Reservation
from domain.enums import NotificationEvent, PaymentStatus, ReservationStatus
from domain.exceptions import ConflictError, ForbiddenError, NotFoundError
from domain.ports import CouponResolver, NotificationDispatcher, ReservationUpdater
from domain.repositories import PaymentRepository
from domain.value_objects import RequestContext

logger = structlog.get_logger(__name__)


class PaymentService:
    """Payment state machine: one payment per reservation, pending -> completed.

    Talks to the reservation side only through ReservationUpdater.
    """

    def __init__(
        self,
        repository: PaymentRepository,
        reservations: ReservationUpdater,
        coupon_resolver: CouponResolver,
        notifier: NotificationDispatcher,
        settlement_delay: float = 0,
        frontend_url: str = "http://localhost:5173"
    ):
        self.repository = repository
        self.reservations = reservations
        self.coupon_resolver = coupon_resolver
        self.notifier = notifier
        self.settlement_delay = settlement_delay
        self.frontend_url = frontend_url.rstrip("/")

    async def _owned_reservation(self, ctx: Optional[RequestContext], reservation_id: UUID) -> Reservation:
        reservation = await self.reservations.get_reservation(reservation_id)
        if ctx is not None and not ctx.is_admin:
            if not ctx.matches_tenant(reservation.tenant_id) or not reservation.belongs_to(ctx.user_id):
                logger.warning(
                    "payment_access_denied",
                    reservation_id=str(reservation_id),
                    user_id=str(ctx.user_id),
                    tenant_id=ctx.tenant_id,
                )
                raise ForbiddenError("You do not have access to this reservation")
        return reservation

    async def create_intent(self, reservation_id: UUID, ctx: Optional[RequestContext] = None) -> Payment:
        """Return the reservation's payment, creating a pending one if needed"""
        reservation = await self._owned_reservation(ctx, reservation_id)
        existing = await self.repository.find_by_reservation_id(reservation_id)
        if existing:
            return existing

        if reservation.status != ReservationStatus.PENDING:
            raise ConflictError(
                f"Cannot pay for a reservation with status {reservation.status.value}"
            )

        payment = Payment(reservation_id=reservation_id, amount=reservation.total_price)
        try:
            await self.repository.save(payment)
        except ConflictError:
            # lost the race to a concurrent request for the same reservation
            winner = await self.repository.find_by_reservation_id(reservation_id)
            if winner is None:
                raise
            return winner

        logger.info(
            "payment_intent_created",
            payment_id=str(payment.payment_id),
            reservation_id=str(reservation_id),
            amount=str(payment.amount),
        )
        return payment

    async def create_checkout_session(
        self,
        reservation_id: UUID,
        ctx: Optional[RequestContext] = None
    ) -> Tuple[Payment, str]:
        """Open a mock checkout session; returns the payment and its checkout URL"""
        payment = await self.create_intent(reservation_id, ctx)
        if payment.status != PaymentStatus.PENDING:
            raise ConflictError("Payment already processed")

        if not payment.session_id:
            expected_version = payment.version
            payment.open_session()
            await self.repository.update(payment, expected_version)

        url = f"{self.frontend_url}/reservations/{reservation_id}/checkout?sessionId={payment.session_id}"
        logger.info("checkout_session_opened", reservation_id=str(reservation_id), session_id=payment.session_id)
        return payment, url

    async def process_mock_payment(self, reservation_id: UUID, session_id: str) -> Payment:
        """Simulate the provider's success callback for a checkout session"""
        payment = await self.repository.find_by_reservation_id(reservation_id)
        if payment is None or payment.session_id != session_id:
            raise NotFoundError("Payment session not found")

        if self.settlement_delay > 0:
            await asyncio.sleep(self.settlement_delay)
        return await self.settle(reservation_id)

    async def settle(self, reservation_id: UUID) -> Payment:
        """Complete the payment and confirm its reservation.

        The reservation is confirmed first under its version check, so a
        concurrent cancel makes this fail with ConflictError and leaves the
        payment pending. Coupon usage and the confirmation message are
        best-effort.
        """
        payment = await self.repository.find_by_reservation_id(reservation_id)
        if payment is None:
            raise NotFoundError("Payment not found for this reservation")
        if payment.status == PaymentStatus.COMPLETED:
            return payment

        reservation = await self.reservations.get_reservation(reservation_id)
        if reservation.status != ReservationStatus.PENDING:
            raise ConflictError(
                f"Cannot settle a reservation with status {reservation.status.value}"
            )

        reservation = await self.reservations.confirm_payment(reservation_id)

        expected_version = payment.version
        payment.complete()
        await self.repository.update(payment, expected_version)
        logger.info(
            "payment_settled",
            payment_id=str(payment.payment_id),
            reservation_id=str(reservation_id),
            amount=str(payment.amount),
        )

        if reservation.coupon_code:
            await self._commit_coupon(reservation.coupon_code)

        notify_safely(self.notifier, NotificationEvent.RESERVATION_CONFIRMED, {
            **reservation_payload(reservation),
            "amount": str(payment.amount),
        })
        return payment

    async def _commit_coupon(self, code: str) -> None:
        try:
            coupon_id = await self.coupon_resolver.find_coupon_id(code)
            if coupon_id:
                await self.coupon_resolver.commit_usage(coupon_id)
        except Exception as e:
            logger.warning("coupon_usage_commit_failed", coupon_code=code, error=str(e))

    async def find_all(self, ctx: RequestContext) -> List[Payment]:
        """Admins see every payment; guests see payments of their own reservations"""
        payments = await self.repository.find_all()
        if not ctx.is_admin:
            visible = []
            for payment in payments:
                reservation = await self.reservations.get_reservation(payment.reservation_id)
                if ctx.matches_tenant(reservation.tenant_id) and reservation.belongs_to(ctx.user_id):
                    visible.append(payment)
            payments = visible
        return sorted(payments, key=lambda p: p.created_at, reverse=True)

    async def find_one(self, ctx: RequestContext, payment_id: UUID) -> Payment:
        payment = await self.repository.find_by_id(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment with ID {payment_id} not found")
        await self._owned_reservation(ctx, payment.reservation_id)
        return payment
