"""Composition root: wires repositories, adapters and services for one app"""
from typing import Optional

import structlog

from application.availability import AvailabilityService
from application.cache import ReadThroughCache
from application.checkin import CheckInService
from application.locks import RoomLockRegistry
from application.payments import PaymentService
from application.reservations import ReservationService
from application.room_blocks import RoomBlockService
from application.rooms import RoomCatalogService
from domain.ports import CacheBackend
from infrastructure.cache import InMemoryCacheBackend, RedisCacheBackend
from infrastructure.config import Settings
from infrastructure.coupons import InMemoryCouponResolver
from infrastructure.notifications import (
    LoggingNotificationSender, NotificationSender, QueueNotificationDispatcher
)
from infrastructure.repositories.in_memory_repositories import (
    InMemoryRoomRepository, InMemoryReservationRepository,
    InMemoryRoomBlockRepository, InMemoryPaymentRepository
)

logger = structlog.get_logger(__name__)


def build_cache_backend(settings: Settings) -> CacheBackend:
    if settings.REDIS_URL:
        logger.info("cache_backend_selected", backend="redis")
        return RedisCacheBackend.from_url(settings.REDIS_URL)
    logger.info("cache_backend_selected", backend="memory")
    return InMemoryCacheBackend()


class Container:
    """Holds one instance of every service; the API resolves services from here"""

    def __init__(
        self,
        settings: Settings,
        cache_backend: Optional[CacheBackend] = None,
        notification_sender: Optional[NotificationSender] = None
    ):
        self.settings = settings

        # Repositories
        self.room_repo = InMemoryRoomRepository()
        self.reservation_repo = InMemoryReservationRepository()
        self.block_repo = InMemoryRoomBlockRepository()
        self.payment_repo = InMemoryPaymentRepository()

        # Adapters
        self.cache_backend = cache_backend or build_cache_backend(settings)
        self.cache = ReadThroughCache(
            self.cache_backend,
            room_ttl=settings.CACHE_TTL_ROOM,
            search_ttl=settings.CACHE_TTL_SEARCH,
            availability_ttl=settings.CACHE_TTL_AVAILABILITY
        )
        self.coupons = InMemoryCouponResolver()
        self.notifier = QueueNotificationDispatcher(
            notification_sender or LoggingNotificationSender(),
            maxsize=settings.NOTIFICATION_QUEUE_SIZE
        )
        self.locks = RoomLockRegistry()

        # Services
        self.rooms = RoomCatalogService(self.room_repo, self.reservation_repo, self.cache)
        self.availability = AvailabilityService(
            self.room_repo, self.reservation_repo, self.block_repo, self.cache
        )
        self.room_blocks = RoomBlockService(
            self.block_repo, self.reservation_repo, self.rooms, self.locks, self.cache
        )
        self.reservations = ReservationService(
            self.reservation_repo, self.room_repo, self.availability,
            self.coupons, self.notifier, self.locks, self.cache
        )
        self.payments = PaymentService(
            self.payment_repo, self.reservations, self.coupons, self.notifier,
            settlement_delay=settings.PAYMENT_SETTLEMENT_DELAY_SECONDS,
            frontend_url=settings.FRONTEND_URL
        )
        self.checkin = CheckInService(self.reservation_repo, self.notifier)

    async def start(self) -> None:
        await self.notifier.start()

    async def stop(self) -> None:
        await self.notifier.stop()
        if isinstance(self.cache_backend, RedisCacheBackend):
            await self.cache_backend.close()
